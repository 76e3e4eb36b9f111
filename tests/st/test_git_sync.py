"""真实 git 同步测试：上游为本地临时仓库，不访问网络"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest
from click.testing import CliRunner

import reporef.cli as climod
import reporef.core.config as cfgmod
from reporef.core.exceptions import ExecutionError, SyncFailure
from reporef.core.models import SyncOutcome
from reporef.core.providers import ProviderRegistry
from reporef.core.registry import ReferenceRegistry
from reporef.services.container import reset_container
from reporef.services.reporef_service import RepoRefService
from reporef.services.sync.engine import SyncEngine
from reporef.services.sync.git_backend import GitBackend
from reporef.services.sync.workspace import WorkspaceManager

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="需要 git 可执行文件")


def _git(cwd: Path, *args: str) -> str:
    r = subprocess.run(
        ["git", "-c", "user.name=reporef", "-c", "user.email=reporef@example.com",
         "-c", "commit.gpgsign=false", *args],
        cwd=cwd, capture_output=True, text=True, check=True,
    )
    return r.stdout.strip()


def _commit(repo: Path, name: str, content: str) -> str:
    (repo / name).write_text(content, encoding="utf-8")
    _git(repo, "add", name)
    _git(repo, "commit", "-q", "-m", f"add {name}")
    return _git(repo, "rev-parse", "HEAD")


@pytest.fixture()
def upstream(tmp_path: Path) -> dict:
    """alice/bar: master 两个提交，feature-x 分支一个额外提交，tag v1.0 指向第一个提交"""
    root = tmp_path / "upstream"
    repo = root / "alice" / "bar"
    repo.mkdir(parents=True)
    _git(repo, "init", "-q")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/master")
    first = _commit(repo, "bar.go", "package bar\n")
    _git(repo, "tag", "v1.0")
    master = _commit(repo, "util.go", "package bar\n\nfunc Util() {}\n")
    _git(repo, "checkout", "-q", "-b", "feature-x")
    feature = _commit(repo, "feature.go", "package bar\n\nfunc Feature() {}\n")
    _git(repo, "checkout", "-q", "master")
    return {"root": root, "repo": repo, "first": first, "master": master, "feature": feature}


@pytest.fixture()
def clone_template(upstream) -> str:
    return str(upstream["root"]) + "/{owner}/{repo}"


@pytest.fixture()
def git_service(tmp_path: Path, clone_template: str, clock) -> RepoRefService:
    providers = ProviderRegistry.from_config({
        "github.com": {"name": "Local", "clone_url": clone_template},
    })
    engine = SyncEngine(GitBackend(timeout=60), clock=clock)
    registry = ReferenceRegistry(engine, WorkspaceManager(tmp_path / "reporefs"), clock=clock)
    return RepoRefService(providers, registry, engine, clock=clock)


def _pinned(record) -> str:
    return _git(record.local_dir, "rev-parse", "refs/heads/master")


class TestGitSync:
    def test_default_branch(self, git_service, upstream) -> None:
        _, record = git_service.acquire("/github.com/alice/bar")
        assert record.commit_hash == upstream["master"]
        assert _pinned(record) == upstream["master"]
        head = (record.serving_root / "HEAD").read_text(encoding="utf-8")
        assert head == "ref: refs/heads/master\n"
        info_refs = (record.serving_root / "info" / "refs").read_text(encoding="utf-8")
        assert upstream["master"] in info_refs

    def test_branch_pinned_as_master(self, git_service, upstream) -> None:
        _, record = git_service.acquire("/github.com/alice/bar@feature-x")
        assert _pinned(record) == upstream["feature"]
        # 服务目录中 HEAD 解析到 feature-x 的提交
        assert _git(record.serving_root, "rev-parse", "HEAD") == upstream["feature"]

    def test_commit(self, git_service, upstream) -> None:
        _, record = git_service.acquire(f"/github.com/alice/bar@{upstream['first']}")
        assert record.identity.is_commit
        assert _pinned(record) == upstream["first"]

    def test_tag(self, git_service, upstream) -> None:
        _, record = git_service.acquire("/github.com/alice/bar@v1.0")
        assert _pinned(record) == upstream["first"]

    def test_branch_refresh(self, git_service, upstream, clock) -> None:
        _, record = git_service.acquire("/github.com/alice/bar")
        newer = _commit(upstream["repo"], "new.go", "package bar\n")

        git_service.acquire("/github.com/alice/bar")
        assert _pinned(record) == upstream["master"]

        clock.advance(61)
        git_service.acquire("/github.com/alice/bar")
        assert record.commit_hash == newer
        assert _pinned(record) == newer
        assert newer in (record.serving_root / "info" / "refs").read_text(encoding="utf-8")

    def test_failed_refresh_keeps_served_state(
        self, git_service, upstream, clock, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        _, record = git_service.acquire("/github.com/alice/bar")
        info_refs = record.serving_root / "info" / "refs"
        published = info_refs.read_text(encoding="utf-8")
        _commit(upstream["repo"], "new.go", "package bar\n")

        def broken_metadata(workdir: Path) -> None:
            raise ExecutionError("git update-server-info失败 (rc=1)", returncode=1)

        monkeypatch.setattr(git_service.engine.vcs, "refresh_serving_metadata", broken_metadata)
        clock.advance(61)
        _, again = git_service.acquire("/github.com/alice/bar")

        assert again is record
        assert record.failures == 1
        assert record.commit_hash == upstream["master"]
        assert _pinned(record) == upstream["master"]
        assert (record.serving_root / "HEAD").read_text(encoding="utf-8") == "ref: refs/heads/master\n"
        assert info_refs.read_text(encoding="utf-8") == published

    def test_failed_fetch_keeps_served_state(self, git_service, upstream, clock) -> None:
        _, record = git_service.acquire("/github.com/alice/bar")
        shutil.rmtree(upstream["repo"])

        clock.advance(61)
        git_service.acquire("/github.com/alice/bar")
        assert record.failures == 1
        assert _pinned(record) == upstream["master"]
        assert (record.serving_root / "HEAD").read_text(encoding="utf-8") == "ref: refs/heads/master\n"

    def test_unknown_branch(self, git_service, tmp_path: Path) -> None:
        with pytest.raises(SyncFailure):
            git_service.acquire("/github.com/alice/bar@no-such-branch")
        assert len(git_service.registry) == 0
        assert not (tmp_path / "reporefs" / "github.com" / "alice" / "bar@no-such-branch").exists()

    def test_unknown_repo(self, git_service) -> None:
        with pytest.raises(SyncFailure) as exc_info:
            git_service.acquire("/github.com/alice/missing")
        assert exc_info.value.step == "clone"

    def test_existing_checkout_after_restart(
        self, git_service, upstream, tmp_path: Path, clock,
    ) -> None:
        _, record = git_service.acquire(f"/github.com/alice/bar@{upstream['first']}")

        # 新进程：新的注册表，复用磁盘上的工作副本
        engine = SyncEngine(GitBackend(timeout=60), clock=clock)
        registry = ReferenceRegistry(engine, WorkspaceManager(tmp_path / "reporefs"), clock=clock)
        fresh = registry.get_or_create(record.identity, record.provider)
        assert fresh is not record
        assert fresh.synced
        assert engine.synchronize(fresh) is SyncOutcome.NOT_REQUIRED
        assert _pinned(fresh) == upstream["first"]


class TestCliSync:
    def test_sync_command(
        self, tmp_path: Path, clone_template: str, upstream, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        cfg_file = tmp_path / "cfg.yml"
        cfg_file.write_text(
            f"data_dir: {tmp_path / 'reporefs'}\n"
            "providers:\n"
            "  github.com:\n"
            "    name: Local\n"
            f"    clone_url: '{clone_template}'\n",
            encoding="utf-8",
        )
        monkeypatch.setattr(cfgmod, "_current", None)
        monkeypatch.setattr(climod, "setup_logging", lambda **kwargs: None)
        try:
            result = CliRunner().invoke(
                climod.main, ["-c", str(cfg_file), "sync", "/github.com/alice/bar@feature-x"],
            )
        finally:
            reset_container()
        assert result.exit_code == 0, result.output
        assert upstream["feature"] in result.output
