"""同步引擎：保证本地工作副本与固定的 ref 一致

同步流程（在记录的 sync_lock 内执行，同一标识同一时刻至多一个同步）:
  1. 创建本地工作目录
  2. 尝试 clone；目标已有工作副本时走更新分支
  3a. 新 clone: 强制检出 ref
  3b. 已有副本: commit 无需更新；branch 从上游拉取
  4. 将 HEAD 固定到 master，master 指向 ref 当前的 commit
  5. 刷新 dumb 协议元数据 (update-server-info)
  6. 记录同步时间

第 6 步之前的任何失败都不更新同步时间；已有副本的刷新失败时，
master 与元数据恢复到上次发布的 commit。
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TypeVar

from reporef.core.exceptions import ExecutionError, SyncFailure
from reporef.core.models import RefKind, SyncOutcome
from reporef.core.reporef import RepositoryReference
from reporef.services.sync.git_backend import VcsBackend
from reporef.services.sync.workspace import WorkspaceManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncEngine:
    """代码仓引用同步引擎"""

    def __init__(
        self,
        vcs: VcsBackend,
        *,
        ttl: float = 60.0,
        backoff: float = 30.0,
        backoff_max: float = 600.0,
        cleanup_failed_clone: bool = True,
        pinned_branch: str = "master",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.vcs = vcs
        self.ttl = ttl
        self.backoff = backoff
        self.backoff_max = backoff_max
        self.cleanup_failed_clone = cleanup_failed_clone
        self.pinned_branch = pinned_branch
        self._clock = clock

    # ---- 过期判断 ----

    def is_stale(self, ref: RepositoryReference) -> bool:
        """branch 超过 TTL 且不在失败退避期内时需要刷新；commit 永不刷新"""
        if ref.evicted or ref.ref_kind is RefKind.COMMIT:
            return False
        now = self._clock()
        if now < ref.retry_after:
            return False
        if ref.last_sync_time is None:
            return True
        return now - ref.last_sync_time > self.ttl

    def refresh_if_stale(self, ref: RepositoryReference) -> bool:
        """过期则同步，返回是否执行了同步

        Raises:
            SyncFailure: 同步失败（已记录退避，原工作副本保持不变）
        """
        if not self.is_stale(ref):
            return False
        with ref.sync_lock:
            # 等锁期间其他线程可能已完成刷新
            if not self.is_stale(ref):
                return False
            self.synchronize(ref)
        return True

    # ---- 同步 ----

    def synchronize(self, ref: RepositoryReference) -> SyncOutcome:
        """无条件同步

        Raises:
            SyncFailure: 任一步骤失败
        """
        with ref.sync_lock:
            if ref.evicted:
                raise SyncFailure(f"代码仓引用已淘汰: {ref.key}", step="evicted")
            first = not ref.synced
            started = self._clock()
            try:
                outcome = self._synchronize_locked(ref, first)
            except SyncFailure as e:
                self._record_failure(ref, e)
                if first and self.cleanup_failed_clone:
                    WorkspaceManager.remove(ref.local_dir)
                raise
            logger.info(
                "同步完成: %s -> %s (%s, %.1fs)",
                ref.key, ref.commit_hash[:12], outcome.value, self._clock() - started,
            )
            return outcome

    def _synchronize_locked(self, ref: RepositoryReference, first: bool) -> SyncOutcome:
        workdir = ref.local_dir
        self._step(ref, "mkdir", lambda: workdir.mkdir(parents=True, exist_ok=True))

        try:
            fresh = self.vcs.clone(ref.clone_url, workdir)
        except (ExecutionError, OSError) as e:
            if first:
                WorkspaceManager.remove(workdir)
            raise SyncFailure(f"clone 失败 {ref.key}: {e}", step="clone") from e

        if fresh:
            self._step(ref, "checkout", lambda: self.vcs.checkout(workdir, ref.ref))
            with ref.rw_lock.write():
                self._pin_and_publish(ref)
            return SyncOutcome.CLONED

        if ref.ref_kind is RefKind.COMMIT:
            if not first:
                logger.info("commit 不会变化，无需更新: %s", ref.key)
                return SyncOutcome.NOT_REQUIRED
            # 上一个进程留下的工作副本：不联系上游，只重新固定本地指针
            with ref.rw_lock.write():
                self._pin_and_publish(ref)
            return SyncOutcome.NOT_REQUIRED

        previous = ref.commit_hash
        with ref.rw_lock.write():
            try:
                self._step(ref, "pull", lambda: self.vcs.pull(workdir, ref.ref))
                self._pin_and_publish(ref)
            except SyncFailure:
                if not first:
                    self._restore_pin(ref, previous)
                raise
        return SyncOutcome.UPDATED

    def _pin_and_publish(self, ref: RepositoryReference) -> None:
        """固定默认分支并刷新元数据，成功后记录同步时间"""
        workdir = ref.local_dir
        commit_hash = self._step(
            ref, "resolve", lambda: self.vcs.resolve_hash(workdir, ref.ref, ref.ref_kind),
        )
        self._step(
            ref, "pin",
            lambda: self.vcs.pin_default_branch(workdir, commit_hash, self.pinned_branch),
        )
        self._step(ref, "metadata", lambda: self.vcs.refresh_serving_metadata(workdir))

        ref.commit_hash = commit_hash
        ref.last_sync_time = self._clock()
        ref.synced_at = datetime.now(timezone.utc)
        ref.failures = 0
        ref.retry_after = 0.0
        ref.last_error = ""

    def _restore_pin(self, ref: RepositoryReference, commit_hash: str) -> None:
        """刷新失败后把 master 与元数据恢复到上次发布的 commit"""
        if not commit_hash:
            return
        workdir = ref.local_dir
        try:
            self.vcs.pin_default_branch(workdir, commit_hash, self.pinned_branch)
            self.vcs.refresh_serving_metadata(workdir)
        except (ExecutionError, OSError) as e:
            logger.error("恢复已发布的 commit 失败: %s -> %s (%s)", ref.key, commit_hash[:12], e)
            return
        logger.info("已恢复到上次发布的 commit: %s -> %s", ref.key, commit_hash[:12])

    @staticmethod
    def _step(ref: RepositoryReference, step: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except (ExecutionError, OSError) as e:
            raise SyncFailure(f"{step} 失败 {ref.key}: {e}", step=step) from e

    def _record_failure(self, ref: RepositoryReference, exc: SyncFailure) -> None:
        ref.failures += 1
        delay = min(self.backoff * 2 ** (ref.failures - 1), self.backoff_max)
        ref.retry_after = self._clock() + delay
        ref.last_error = str(exc)
        logger.error(
            "同步失败 (第 %d 次，%.0fs 后重试): %s [step=%s] %s",
            ref.failures, delay, ref.key, exc.step, exc,
        )
