"""shell.py run_cmd 单元测试"""

from __future__ import annotations

import os

import pytest

from reporef.core.exceptions import ExecutionError
from reporef.utils.shell import CommandResult, get_executor, run_cmd, set_executor


class TestRunCmd:
    def test_success(self, tmp_path) -> None:
        r = run_cmd(["echo", "hello"], cwd=str(tmp_path), label="test")
        assert r.returncode == 0
        assert r.success
        assert "hello" in r.stdout

    def test_failure_raises_execution_error(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="cmd失败") as exc_info:
            run_cmd(["false"], cwd=str(tmp_path))
        assert exc_info.value.returncode == 1

    def test_custom_label_in_error(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="git clone失败"):
            run_cmd(["false"], cwd=str(tmp_path), label="git clone")

    def test_stderr_kept(self, tmp_path) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            run_cmd(["sh", "-c", "echo oops >&2; exit 3"], cwd=str(tmp_path))
        assert exc_info.value.returncode == 3
        assert "oops" in exc_info.value.stderr

    def test_env_passed(self, tmp_path) -> None:
        env = {**os.environ, "MY_TEST_VAR": "42"}
        r = run_cmd(["env"], cwd=str(tmp_path), env=env, label="env_test")
        assert "MY_TEST_VAR=42" in r.stdout

    def test_timeout(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="超时"):
            run_cmd(["sleep", "5"], cwd=str(tmp_path), timeout=0.2, label="sleep")

    def test_no_shell_expansion(self, tmp_path) -> None:
        r = run_cmd(["echo", "$HOME;ls"], cwd=str(tmp_path))
        assert r.stdout.strip() == "$HOME;ls"


class TestExecutorInjection:
    def test_explicit_executor(self) -> None:
        calls: list = []

        class Recorder:
            def execute(self, cmd, *, cwd=".", env=None, timeout=None):
                calls.append((cmd, cwd, timeout))
                return CommandResult(0, "ok", "")

        r = run_cmd(["git", "status"], cwd="/repo", timeout=3, executor=Recorder())
        assert r.stdout == "ok"
        assert calls == [(["git", "status"], "/repo", 3)]

    def test_set_global_executor(self) -> None:
        class TimedOut:
            def execute(self, cmd, *, cwd=".", env=None, timeout=None):
                return CommandResult(-1, "", "", timed_out=True)

        original = get_executor()
        set_executor(TimedOut())
        try:
            with pytest.raises(ExecutionError, match="fetch超时"):
                run_cmd(["git", "fetch"], label="fetch", timeout=1)
        finally:
            set_executor(original)
