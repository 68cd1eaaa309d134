"""GitMonitor — polls a repository and records version-control events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from stacktrace.errors import StoreError, TransientCaptureError
from stacktrace.monitors.base import RepeatingTask
from stacktrace.monitors.git import CommitInfo, GitRepository
from stacktrace.observability.metrics import (
    record_capture_failure,
    record_git_event,
    timed_operation,
)
from stacktrace.store.timeline import TimelineStore
from stacktrace.types.config import GitMonitorConfig
from stacktrace.types.monitors import CaptureFailure, GitMonitorStatus, PollResult
from stacktrace.types.session import VcsEventKind, VcsEventRecord

logger = logging.getLogger(__name__)


def new_commits_since(commits: list[CommitInfo], last_hash: str | None) -> list[CommitInfo]:
    """Commits strictly newer than *last_hash*, oldest first.

    *commits* is newest first. When *last_hash* is not in the window (a
    rebase or force-push rewrote history, or the window is too small) every
    polled commit counts as new.
    """
    fresh: list[CommitInfo] = []
    for commit in commits:
        if commit.hash == last_hash:
            break
        fresh.append(commit)
    fresh.reverse()
    return fresh


class GitMonitor:
    """Polls a git work tree and appends events to the timeline.

    Each poll cycle compares branch, recent commits and working-tree status
    against the last-known state. Every step is independent: a failing git
    command is logged, recorded in the :class:`PollResult`, and the remaining
    steps still run.
    """

    def __init__(
        self,
        store: TimelineStore,
        config: GitMonitorConfig | None = None,
        *,
        repository_factory: Callable[[Path], GitRepository] = GitRepository,
    ) -> None:
        self._store = store
        self._config = config or GitMonitorConfig()
        self._repository_factory = repository_factory
        self._repo: GitRepository | None = None
        self._project_path: Path | None = None
        self._session_id: int | None = None
        self._last_commit_hash: str | None = None
        self._last_branch: str | None = None
        self._monitoring = False
        self._task: RepeatingTask | None = None

    # -- Properties -------------------------------------------------------

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    @property
    def last_branch(self) -> str | None:
        return self._last_branch

    @property
    def last_commit_hash(self) -> str | None:
        return self._last_commit_hash

    def status(self) -> GitMonitorStatus:
        return GitMonitorStatus(
            is_monitoring=self._monitoring,
            project_path=str(self._project_path) if self._project_path else None,
            session_id=self._session_id,
            last_commit_hash=self._last_commit_hash,
            last_branch=self._last_branch,
            poll_interval_seconds=self._config.poll_interval,
        )

    # -- Lifecycle --------------------------------------------------------

    async def start_monitoring(self, project_path: str | Path, session_id: int) -> bool:
        """Record the baseline and start polling.

        Returns False without starting a timer when *project_path* is not a
        git work tree.
        """
        if self._monitoring:
            await self.stop_monitoring()

        path = Path(project_path)
        repo = self._repository_factory(path)
        if not await repo.is_repository():
            logger.warning("%s is not a git repository; git monitoring disabled", path)
            return False

        self._repo = repo
        self._project_path = path
        self._session_id = session_id
        self._monitoring = True
        await self._capture_initial_state()

        self._task = RepeatingTask(self.poll, self._config.poll_interval, name="git-poll")
        self._task.start()
        logger.info(
            "Git monitoring started for %s (polling every %.0f seconds)",
            path, self._config.poll_interval,
        )
        return True

    async def stop_monitoring(self) -> bool:
        """Stop polling and record a ``session_end`` event. Safe when idle."""
        if self._task is not None:
            await self._task.stop()
            self._task = None
        self._monitoring = False

        if self._repo is not None and self._session_id is not None:
            await self._write_event(
                VcsEventRecord(
                    event_type=VcsEventKind.SESSION_END,
                    branch_name=self._last_branch,
                    commit_hash=self._last_commit_hash,
                    message="Git monitoring stopped",
                ),
                PollResult(),
            )
            logger.info("Git monitoring stopped")

        self._repo = None
        self._project_path = None
        self._session_id = None
        self._last_commit_hash = None
        self._last_branch = None
        return True

    async def _capture_initial_state(self) -> None:
        assert self._repo is not None
        result = PollResult()
        try:
            self._last_branch = await self._repo.current_branch()
        except TransientCaptureError as exc:
            self._step_failed(result, "branch", exc)
        try:
            commits = await self._repo.recent_commits(1)
        except TransientCaptureError as exc:
            self._step_failed(result, "log", exc)
        else:
            if commits:
                self._last_commit_hash = commits[0].hash

        await self._write_event(
            VcsEventRecord(
                event_type=VcsEventKind.SESSION_START,
                branch_name=self._last_branch,
                commit_hash=self._last_commit_hash,
                message=f"Started monitoring on branch: {self._last_branch}",
            ),
            result,
        )

    # -- Poll cycle -------------------------------------------------------

    async def poll(self) -> PollResult:
        """Run one poll cycle: branch, commits, then working-tree status."""
        result = PollResult()
        if not self._monitoring or self._repo is None:
            return result

        with timed_operation("git_poll"):
            branch = await self._check_branch(result)
            await self._check_commits(branch, result)
            await self._check_status(branch, result)

        if result.failures:
            logger.debug("Git poll finished with %d failed steps", len(result.failures))
        return result

    async def _check_branch(self, result: PollResult) -> str | None:
        assert self._repo is not None
        try:
            branch = await self._repo.current_branch()
        except TransientCaptureError as exc:
            self._step_failed(result, "branch", exc)
            return self._last_branch

        if self._last_branch is None:
            # Baseline could not be read at start; adopt it silently.
            self._last_branch = branch
        elif branch != self._last_branch:
            previous = self._last_branch
            self._last_branch = branch
            result.branch_changed = True
            await self._write_event(
                VcsEventRecord(
                    event_type=VcsEventKind.BRANCH_CHANGE,
                    branch_name=branch,
                    message=f"Switched from {previous} to {branch}",
                ),
                result,
            )
        return branch

    async def _check_commits(self, branch: str | None, result: PollResult) -> None:
        assert self._repo is not None
        try:
            commits = await self._repo.recent_commits(self._config.commit_window)
        except TransientCaptureError as exc:
            self._step_failed(result, "log", exc)
            return

        if not commits or commits[0].hash == self._last_commit_hash:
            return

        for commit in new_commits_since(commits, self._last_commit_hash):
            try:
                files = await self._repo.commit_files(commit.hash)
            except TransientCaptureError as exc:
                self._step_failed(result, commit.hash, exc)
                files = []
            result.new_commits.append(commit.hash)
            await self._write_event(
                VcsEventRecord(
                    event_type=VcsEventKind.COMMIT,
                    branch_name=branch,
                    commit_hash=commit.hash,
                    message=commit.message,
                    files_changed=files,
                ),
                result,
            )

        self._last_commit_hash = commits[0].hash

    async def _check_status(self, branch: str | None, result: PollResult) -> None:
        assert self._repo is not None
        try:
            status = await self._repo.status()
        except TransientCaptureError as exc:
            self._step_failed(result, "status", exc)
            return

        if not status.is_dirty:
            return

        result.dirty = True
        await self._write_event(
            VcsEventRecord(
                event_type=VcsEventKind.STATUS_CHANGE,
                branch_name=branch,
                message="Working directory changes detected",
                files_changed=status.as_dict(),
            ),
            result,
        )

    # -- Helpers ----------------------------------------------------------

    async def _write_event(self, record: VcsEventRecord, result: PollResult) -> int | None:
        if self._session_id is None:
            logger.warning("No session available for git event capture")
            return None
        try:
            event_id = await self._store.append_vcs_event(self._session_id, record)
        except StoreError as exc:
            self._step_failed(result, record.event_type.value, exc)
            return None
        result.events_written += 1
        record_git_event(record.event_type.value)
        logger.debug("Git event captured: %s (ID: %d)", record.event_type.value, event_id)
        return event_id

    @staticmethod
    def _step_failed(result: PollResult, unit: str, exc: Exception) -> None:
        logger.warning("Git capture step '%s' failed: %s", unit, exc)
        result.failures.append(CaptureFailure(unit=unit, error=str(exc)))
        record_capture_failure("git", unit)
