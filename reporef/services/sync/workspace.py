"""工作空间管理：本地工作目录布局、列出和清理

目录布局: <root>/<host>/<owner>/<repo>@<ref>
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from reporef.core.exceptions import ExecutionError
from reporef.core.models import RepoIdentity
from reporef.utils.shell import CommandExecutor, run_cmd

logger = logging.getLogger(__name__)


class WorkspaceManager:
    """工作空间管理器"""

    def __init__(
        self,
        root: str | Path,
        *,
        git_binary: str = "git",
        pinned_branch: str = "master",
        executor: CommandExecutor | None = None,
    ) -> None:
        self.root = Path(root)
        self._git = git_binary
        self._pinned_branch = pinned_branch
        self._executor = executor

    def local_directory_for(self, identity: RepoIdentity) -> Path:
        """标识对应的本地工作目录"""
        return self.root / identity.host / identity.owner / f"{identity.repo}@{identity.ref}"

    def serving_root(self, identity: RepoIdentity) -> Path:
        """静态文件服务根目录"""
        return self.local_directory_for(identity) / ".git"

    @staticmethod
    def remove(path: Path) -> None:
        """删除工作目录（不存在时忽略）"""
        if path.exists():
            shutil.rmtree(path, ignore_errors=True)
            logger.info("已删除工作目录: %s", path)

    def list_workspaces(self) -> list[dict[str, str]]:
        """列出本地已同步的工作目录"""
        result: list[dict[str, str]] = []
        if not self.root.exists():
            return result
        for git_dir in sorted(self.root.glob("*/*/*/.git")):
            ws = git_dir.parent
            repo, _, ref = ws.name.rpartition("@")
            if not repo:
                continue
            result.append({
                "identity": f"{ws.parent.parent.name}/{ws.parent.name}/{ws.name}",
                "host": ws.parent.parent.name,
                "owner": ws.parent.name,
                "repo": repo,
                "ref": ref,
                "path": str(ws),
                "commit": self._pinned_commit(ws),
            })
        return result

    def clean(self, identity_key: str) -> bool:
        """清理指定标识（host/owner/repo@ref）的本地工作目录，返回是否存在"""
        parts = identity_key.strip("/").split("/")
        if len(parts) != 3 or any(p in ("", ".", "..") for p in parts):
            return False
        ws = self.root.joinpath(*parts)
        if not ws.is_dir():
            return False
        self.remove(ws)
        return True

    def _pinned_commit(self, ws: Path) -> str:
        try:
            r = run_cmd(
                [self._git, "rev-parse", "--verify", "--quiet", f"refs/heads/{self._pinned_branch}"],
                cwd=str(ws), label="git rev-parse", executor=self._executor, timeout=30,
            )
        except (ExecutionError, OSError):
            return ""
        return r.stdout.strip()
