"""Shell 命令执行工具 — 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，方便测试替换。
所有外部命令均带超时，避免挂起的 git 进程无限期阻塞同一代码仓的请求。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

from reporef.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """stdout + stderr 合并文本，用于匹配诊断信息"""
        return f"{self.stdout}\n{self.stderr}"


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 — 抽象子进程调用

    测试时可注入假实现，无需 patch subprocess。
    """

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


# =========================================================================
# 默认实现: 本地执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        try:
            r = subprocess.run(
                cmd, capture_output=True, text=True,
                cwd=cwd, env=env, check=False, timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            return CommandResult(
                returncode=-1,
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr) or f"命令超时 ({timeout}s)",
                timed_out=True,
            )
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor


# =========================================================================
# 便捷函数
# =========================================================================

def run_cmd(
    cmd: list[str], *, cwd: str = ".",
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    label: str = "cmd",
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """执行命令，失败或超时抛 ExecutionError

    Args:
        cmd: 参数列表（不经过 shell）
        cwd: 工作目录
        env: 环境变量（不传则继承当前进程）
        timeout: 超时秒数
        label: 日志标签
        executor: 命令执行器，默认使用全局执行器
    """
    executor = executor or get_executor()
    logger.info("  %s: %s (cwd=%s)", label, " ".join(cmd), cwd)
    r = executor.execute(cmd, cwd=cwd, env=env, timeout=timeout)
    if r.timed_out:
        raise ExecutionError(
            f"{label}超时 ({timeout}s)", returncode=r.returncode, stderr=r.stderr,
        )
    if r.returncode != 0:
        raise ExecutionError(
            f"{label}失败 (rc={r.returncode}): {r.stderr.strip()[:500]}",
            returncode=r.returncode, stderr=r.stderr,
        )
    return r
