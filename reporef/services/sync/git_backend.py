"""版本控制能力接口与 git 命令行实现

同步引擎只依赖 VcsBackend 协议；GitBackend 通过 CommandExecutor 调用 git，
测试时可注入假执行器或直接替换整个后端。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

from reporef.core.exceptions import ExecutionError
from reporef.core.models import RefKind
from reporef.utils.shell import CommandExecutor, CommandResult, run_cmd

logger = logging.getLogger(__name__)

# git clone 到非空目录时的诊断信息（LC_ALL=C 下稳定）
CLONE_EXISTS_MARKER = "already exists and is not an empty directory"


# =========================================================================
# 能力接口
# =========================================================================

class VcsBackend(Protocol):
    """版本控制后端协议"""

    def clone(self, url: str, workdir: Path) -> bool:
        """克隆到 workdir；新克隆返回 True，目标已有非空工作副本返回 False"""
        ...

    def pull(self, workdir: Path, ref: str) -> None:
        """从上游拉取 ref 的最新状态"""
        ...

    def checkout(self, workdir: Path, ref: str) -> None:
        """强制检出 ref 到工作区"""
        ...

    def resolve_hash(self, workdir: Path, ref: str, kind: RefKind) -> str:
        """解析 ref 当前指向的完整 commit hash"""
        ...

    def pin_default_branch(self, workdir: Path, commit_hash: str, branch: str = "master") -> None:
        """HEAD 指向 refs/heads/<branch>，并将该分支指向 commit_hash"""
        ...

    def refresh_serving_metadata(self, workdir: Path) -> None:
        """重新生成 dumb 协议所需的元数据"""
        ...


# =========================================================================
# git 命令行实现
# =========================================================================

class GitBackend:
    """基于 git 可执行文件的后端"""

    def __init__(
        self,
        git_binary: str = "git",
        *,
        timeout: float | None = 600.0,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.git_binary = git_binary
        self.timeout = timeout
        self._executor = executor

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        # 诊断信息不随语言环境变化；私有仓库不交互式索要凭据
        env.update({"LC_ALL": "C", "LANGUAGE": "C", "GIT_TERMINAL_PROMPT": "0"})
        return env

    def _git(self, workdir: Path, *args: str, label: str) -> CommandResult:
        return run_cmd(
            [self.git_binary, *args],
            cwd=str(workdir), env=self._env(), timeout=self.timeout,
            label=label, executor=self._executor,
        )

    def clone(self, url: str, workdir: Path) -> bool:
        try:
            self._git(workdir, "clone", "--quiet", url, ".", label="git clone")
        except ExecutionError as e:
            if CLONE_EXISTS_MARKER in e.stderr:
                logger.info("工作副本已存在，跳过 clone: %s", workdir)
                return False
            raise
        return True

    def pull(self, workdir: Path, ref: str) -> None:
        self._git(workdir, "fetch", "--quiet", "--force", "--tags", "origin", label="git fetch")
        target = self.resolve_hash(workdir, ref, RefKind.BRANCH)
        # 分离 HEAD，已发布的 master 只由 pin_default_branch 移动
        self._git(workdir, "checkout", "-qf", "--detach", target, label="git checkout")

    def checkout(self, workdir: Path, ref: str) -> None:
        self._git(workdir, "checkout", "-qf", ref, label="git checkout")

    def resolve_hash(self, workdir: Path, ref: str, kind: RefKind) -> str:
        if kind is RefKind.COMMIT:
            candidates = [ref]
        else:
            candidates = [f"refs/remotes/origin/{ref}", f"refs/tags/{ref}", ref]

        for rev in candidates:
            try:
                r = self._git(
                    workdir, "rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}",
                    label="git rev-parse",
                )
            except ExecutionError:
                continue
            commit_hash = r.stdout.strip()
            if commit_hash:
                return commit_hash
        raise ExecutionError(f"无法解析 ref: {ref}")

    def pin_default_branch(self, workdir: Path, commit_hash: str, branch: str = "master") -> None:
        self._git(workdir, "update-ref", f"refs/heads/{branch}", commit_hash, label="git update-ref")
        self._git(workdir, "symbolic-ref", "HEAD", f"refs/heads/{branch}", label="git symbolic-ref")

    def refresh_serving_metadata(self, workdir: Path) -> None:
        self._git(workdir, "update-server-info", label="git update-server-info")
