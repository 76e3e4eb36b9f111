"""服务容器 — 统一依赖注入

进程内的注册表、同步引擎等都通过容器获取，同一容器内实例共享状态。
CLI 和 Web 层均应通过 get_container() 获取服务，而非直接构造。

依赖关系图（→ 表示依赖）:
  service  → providers, registry, engine
  registry → engine, workspace
  engine   → vcs

用法:
    container = ServiceContainer()
    svc = container.service              # 懒加载

    # 显式注入配置 / 替换 git 后端
    container = ServiceContainer(config=cfg, vcs=FakeVcs())

    # 全局单例（Web / CLI 共享）
    from reporef.services.container import get_container
    svc = get_container().service
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reporef.core.config import Config
    from reporef.core.providers import ProviderRegistry
    from reporef.core.registry import ReferenceRegistry
    from reporef.services.reporef_service import RepoRefService
    from reporef.services.sync.engine import SyncEngine
    from reporef.services.sync.git_backend import VcsBackend
    from reporef.services.sync.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(self, config: Config | None = None, vcs: VcsBackend | None = None) -> None:
        self._instances: dict[str, object] = {}
        self._init_lock = threading.RLock()
        if config is None:
            from reporef.core.config import get_config
            config = get_config()
        self._config = config
        if vcs is not None:
            self._instances["vcs"] = vcs

    @property
    def config(self) -> Config:
        return self._config

    def _lazy(self, name: str, factory):  # type: ignore[no-untyped-def]
        # 多线程首次访问时只构造一次（注册表必须进程内唯一）
        if name not in self._instances:
            with self._init_lock:
                if name not in self._instances:
                    self._instances[name] = factory()
        return self._instances[name]

    @property
    def providers(self) -> ProviderRegistry:
        from reporef.core.providers import ProviderRegistry
        return self._lazy(  # type: ignore[no-any-return]
            "providers", lambda: ProviderRegistry.from_config(self._config.providers),
        )

    @property
    def vcs(self) -> VcsBackend:
        from reporef.services.sync.git_backend import GitBackend
        return self._lazy(  # type: ignore[no-any-return]
            "vcs", lambda: GitBackend(
                self._config.git_binary, timeout=self._config.git_timeout or None,
            ),
        )

    @property
    def workspace(self) -> WorkspaceManager:
        from reporef.services.sync.workspace import WorkspaceManager
        return self._lazy(  # type: ignore[no-any-return]
            "workspace", lambda: WorkspaceManager(
                self._config.data_dir,
                git_binary=self._config.git_binary,
                pinned_branch=self._config.pinned_branch,
            ),
        )

    @property
    def engine(self) -> SyncEngine:
        from reporef.services.sync.engine import SyncEngine
        return self._lazy(  # type: ignore[no-any-return]
            "engine", lambda: SyncEngine(
                self.vcs,
                ttl=self._config.branch_ttl,
                backoff=self._config.refresh_backoff,
                backoff_max=self._config.refresh_backoff_max,
                cleanup_failed_clone=self._config.cleanup_failed_clone,
                pinned_branch=self._config.pinned_branch,
            ),
        )

    @property
    def registry(self) -> ReferenceRegistry:
        from reporef.core.registry import ReferenceRegistry
        return self._lazy(  # type: ignore[no-any-return]
            "registry", lambda: ReferenceRegistry(
                self.engine, self.workspace, max_entries=self._config.max_entries,
            ),
        )

    @property
    def service(self) -> RepoRefService:
        from reporef.services.reporef_service import RepoRefService
        return self._lazy(  # type: ignore[no-any-return]
            "service", lambda: RepoRefService(self.providers, self.registry, self.engine),
        )


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def set_container(container: ServiceContainer) -> None:
    """替换全局容器（测试时注入假后端）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = container


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
