"""测试共享 fixture：假 git 后端 + 可控时钟

FakeVcs 在工作目录下模拟 .git 布局（HEAD / refs/heads/master / info/refs），
不联系任何上游；fail 字典可让指定操作抛出 ExecutionError。
"""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from reporef.core.models import Provider, RefKind
from reporef.core.providers import ProviderRegistry
from reporef.core.registry import ReferenceRegistry
from reporef.services.reporef_service import RepoRefService
from reporef.services.sync.engine import SyncEngine
from reporef.services.sync.workspace import WorkspaceManager

BRANCH_HASH = "1" * 40


class FakeClock:
    """手动推进的单调时钟"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeVcs:
    """VcsBackend 的内存实现"""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail: dict[str, Exception] = {}
        self.hashes: dict[str, str] = {}
        self.clone_delay = 0.0
        self.pinned_branch = "master"
        self._lock = threading.Lock()

    def _record(self, op: str, *args: object) -> None:
        with self._lock:
            self.calls.append((op, *args))
        exc = self.fail.get(op)
        if exc is not None:
            raise exc

    def count(self, op: str) -> int:
        with self._lock:
            return sum(1 for c in self.calls if c[0] == op)

    def ops(self) -> list[str]:
        with self._lock:
            return [c[0] for c in self.calls]

    def clone(self, url: str, workdir: Path) -> bool:
        self._record("clone", url, workdir)
        if self.clone_delay:
            time.sleep(self.clone_delay)
        git_dir = workdir / ".git"
        if git_dir.exists():
            return False
        (git_dir / "objects").mkdir(parents=True)
        return True

    def pull(self, workdir: Path, ref: str) -> None:
        self._record("pull", workdir, ref)

    def checkout(self, workdir: Path, ref: str) -> None:
        self._record("checkout", workdir, ref)

    def resolve_hash(self, workdir: Path, ref: str, kind: RefKind) -> str:
        self._record("resolve_hash", workdir, ref, kind)
        if kind is RefKind.COMMIT:
            return ref
        return self.hashes.get(ref, BRANCH_HASH)

    def pin_default_branch(self, workdir: Path, commit_hash: str, branch: str = "master") -> None:
        self._record("pin_default_branch", workdir, commit_hash, branch)
        self.pinned_branch = branch
        git_dir = workdir / ".git"
        (git_dir / "refs" / "heads").mkdir(parents=True, exist_ok=True)
        (git_dir / "HEAD").write_text(f"ref: refs/heads/{branch}\n", encoding="utf-8")
        (git_dir / "refs" / "heads" / branch).write_text(commit_hash + "\n", encoding="utf-8")

    def refresh_serving_metadata(self, workdir: Path) -> None:
        self._record("refresh_serving_metadata", workdir)
        git_dir = workdir / ".git"
        (git_dir / "info").mkdir(parents=True, exist_ok=True)
        branch = self.pinned_branch
        tip = (git_dir / "refs" / "heads" / branch).read_text(encoding="utf-8").strip()
        (git_dir / "info" / "refs").write_text(f"{tip}\trefs/heads/{branch}\n", encoding="utf-8")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_vcs() -> FakeVcs:
    return FakeVcs()


@pytest.fixture()
def providers() -> ProviderRegistry:
    return ProviderRegistry([
        Provider(host="github.com", name="GitHub", clone_url="https://github.com/{owner}/{repo}.git"),
    ])


@pytest.fixture()
def workspace(tmp_path: Path) -> WorkspaceManager:
    return WorkspaceManager(tmp_path / "reporefs")


@pytest.fixture()
def engine(fake_vcs: FakeVcs, clock: FakeClock) -> SyncEngine:
    return SyncEngine(fake_vcs, ttl=60.0, backoff=30.0, backoff_max=600.0, clock=clock)


@pytest.fixture()
def registry(engine: SyncEngine, workspace: WorkspaceManager, clock: FakeClock) -> ReferenceRegistry:
    return ReferenceRegistry(engine, workspace, clock=clock)


@pytest.fixture()
def service(
    providers: ProviderRegistry, registry: ReferenceRegistry,
    engine: SyncEngine, clock: FakeClock,
) -> RepoRefService:
    return RepoRefService(providers, registry, engine, clock=clock)
