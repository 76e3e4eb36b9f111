"""代码仓引用服务：路由层调用的统一入口

请求处理顺序:
  resolve(path)          解析失败直接抛出，不触碰注册表
  get_or_create          首次出现的标识同步完成后才返回
  refresh_if_stale       刷新失败时记录日志并继续提供旧副本
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from reporef.core.exceptions import SyncFailure
from reporef.core.models import ResolvedPath
from reporef.core.providers import ProviderRegistry
from reporef.core.registry import ReferenceRegistry
from reporef.core.reporef import RepositoryReference
from reporef.core.resolver import resolve
from reporef.services.sync.engine import SyncEngine

logger = logging.getLogger(__name__)


class RepoRefService:
    """代码仓引用生命周期管理"""

    def __init__(
        self,
        providers: ProviderRegistry,
        registry: ReferenceRegistry,
        engine: SyncEngine,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.providers = providers
        self.registry = registry
        self.engine = engine
        self._clock = clock

    def resolve(self, request_path: str) -> ResolvedPath:
        return resolve(request_path, self.providers)

    def acquire(self, request_path: str) -> tuple[ResolvedPath, RepositoryReference]:
        """解析路径并返回可用的记录

        Raises:
            ResolutionError: 路径无法解析
            SyncFailure: 首次同步失败（没有任何可提供的内容）
        """
        resolved = self.resolve(request_path)
        provider = self.providers.lookup(resolved.identity.host)
        record = self.registry.get_or_create(resolved.identity, provider)
        self.refresh(record)
        return resolved, record

    def refresh(self, record: RepositoryReference) -> bool:
        """按需刷新；已有同步结果时失败不向上抛出"""
        try:
            return self.engine.refresh_if_stale(record)
        except SyncFailure as e:
            if not record.synced:
                raise
            logger.warning("刷新失败，继续提供上次同步的内容: %s (%s)", record.key, e)
            return False

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        records = self.registry.snapshot()
        return {
            "total_reporefs": len(records),
            "commits": sum(1 for r in records if r.identity.is_commit),
            "branches": sum(1 for r in records if not r.identity.is_commit),
            "reporefs": [r.to_dict(now) for r in records],
        }
