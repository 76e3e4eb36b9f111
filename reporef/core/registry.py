"""代码仓引用注册表：进程级 标识 → 记录 映射

并发约定:
  - 注册表锁只保护 "查找或插入" 这一步，不跨越任何网络操作
  - 新记录的 sync_lock 在释放注册表锁之前获取，
    同一新标识的并发首次请求中，只有插入者执行 clone，其余等待其结果
  - 首次同步失败的记录立即移出注册表，后续请求从头重试
  - 超过容量上限时按最近访问时间淘汰空闲记录（LRU）
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from reporef.core.exceptions import SyncFailure
from reporef.core.models import Provider, RepoIdentity
from reporef.core.reporef import RepositoryReference

if TYPE_CHECKING:
    from reporef.services.sync.engine import SyncEngine
    from reporef.services.sync.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class ReferenceRegistry:
    """线程安全的代码仓引用注册表"""

    def __init__(
        self,
        engine: SyncEngine,
        workspace: WorkspaceManager,
        *,
        max_entries: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._workspace = workspace
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, RepositoryReference] = {}

    # ---- 查找 / 创建 ----

    def get_or_create(self, identity: RepoIdentity, provider: Provider) -> RepositoryReference:
        """返回已有记录；不存在则创建、首次同步后返回

        Raises:
            SyncFailure: 首次同步失败（此时注册表中不留下该标识）
        """
        key = identity.key
        with self._lock:
            record = self._records.get(key)
            created = record is None
            if record is None:
                record = RepositoryReference(
                    identity=identity,
                    provider=provider,
                    local_dir=self._workspace.local_directory_for(identity),
                )
                record.sync_lock.acquire()
                self._records[key] = record
            record.last_access = self._clock()

        if created:
            return self._initialize(record)
        self._await_ready(record)
        if record.evicted:
            # 等待期间已被淘汰，重新查找或创建
            self._discard(record)
            return self.get_or_create(identity, provider)
        return record

    def _initialize(self, record: RepositoryReference) -> RepositoryReference:
        logger.info("新建代码仓引用: %s", record.key)
        try:
            self._engine.synchronize(record)
        except Exception as e:
            # 先移出注册表再释放 sync_lock，等待者醒来时看到的是失败结果
            record.failure = str(e) or type(e).__name__
            self._discard(record)
            logger.error("代码仓引用初始化失败，已移出注册表: %s (%s)", record.key, record.failure)
            raise
        finally:
            record.sync_lock.release()
        self._enforce_capacity()
        return record

    @staticmethod
    def _await_ready(record: RepositoryReference) -> RepositoryReference:
        if record.synced:
            return record
        # 插入者正在首次同步，等待其释放 sync_lock
        with record.sync_lock:
            pass
        if not record.synced:
            raise SyncFailure(
                f"代码仓引用初始化失败: {record.key}: {record.failure or '未知原因'}",
                step="initial",
            )
        return record

    def _discard(self, record: RepositoryReference) -> None:
        with self._lock:
            if self._records.get(record.key) is record:
                del self._records[record.key]

    # ---- 查询 ----

    def get(self, key: str) -> RepositoryReference | None:
        with self._lock:
            return self._records.get(key)

    def snapshot(self) -> list[RepositoryReference]:
        """当前所有记录（按标识排序）"""
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: r.key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._records

    # ---- 淘汰 ----

    def evict(self, key: str) -> bool:
        """移除记录并删除其本地工作目录，返回是否存在"""
        with self._lock:
            record = self._records.pop(key, None)
        if record is None:
            return False
        with record.sync_lock:
            self._retire(record)
        return True

    def _enforce_capacity(self) -> None:
        if not self._max_entries:
            return
        victims: list[RepositoryReference] = []
        with self._lock:
            excess = len(self._records) - self._max_entries
            if excess <= 0:
                return
            for record in sorted(self._records.values(), key=lambda r: r.last_access):
                if len(victims) >= excess:
                    break
                # 正在同步的记录跳过，不在注册表锁内阻塞
                if not record.sync_lock.acquire(blocking=False):
                    continue
                del self._records[record.key]
                victims.append(record)

        for record in victims:
            try:
                self._retire(record)
            finally:
                record.sync_lock.release()

    def _retire(self, record: RepositoryReference) -> None:
        """调用方须持有 record.sync_lock"""
        record.evicted = True
        with record.rw_lock.write():
            self._workspace.remove(record.local_dir)
        logger.info("代码仓引用已淘汰: %s", record.key)
