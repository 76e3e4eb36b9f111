"""代码仓引用记录

每个标识在进程内只有一条记录，由 ReferenceRegistry 创建，
之后只由同步引擎在 sync_lock 保护下修改同步状态。
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from reporef.core.models import Provider, RefKind, RepoIdentity
from reporef.utils.rwlock import ReadWriteLock


@dataclass(eq=False)
class RepositoryReference:
    """进程内的代码仓引用记录"""

    identity: RepoIdentity
    provider: Provider
    local_dir: Path

    # 同步状态（单调时钟秒数，首次成功同步前为 None）
    last_sync_time: float | None = None
    synced_at: datetime | None = None
    commit_hash: str = ""

    # 刷新失败退避
    failures: int = 0
    retry_after: float = 0.0
    last_error: str = ""

    # 首次同步失败时供等待者读取
    failure: str = ""

    last_access: float = 0.0
    evicted: bool = False

    sync_lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    rw_lock: ReadWriteLock = field(default_factory=ReadWriteLock, repr=False)

    @property
    def key(self) -> str:
        return self.identity.key

    @property
    def ref(self) -> str:
        return self.identity.ref

    @property
    def ref_kind(self) -> RefKind:
        return self.identity.ref_kind

    @property
    def clone_url(self) -> str:
        return self.provider.clone_url_for(self.identity.owner, self.identity.repo)

    @property
    def serving_root(self) -> Path:
        """静态文件服务的根目录（工作副本的 .git）"""
        return self.local_dir / ".git"

    @property
    def synced(self) -> bool:
        return self.last_sync_time is not None

    def to_dict(self, now: float | None = None) -> dict[str, Any]:
        """统计页输出"""
        age = None
        if now is not None and self.last_sync_time is not None:
            age = round(now - self.last_sync_time, 1)
        return {
            "identity": self.key,
            "provider": self.provider.name,
            "ref": self.ref,
            "ref_type": self.ref_kind.value,
            "commit": self.commit_hash,
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
            "age_seconds": age,
            "failures": self.failures,
            "last_error": self.last_error,
        }
