"""Test fixtures: temporary store, fake watchdog observer and scripted git repo."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from watchdog.events import FileSystemEvent

from stacktrace.monitors.files import FileMonitor
from stacktrace.monitors.git import CommitInfo, WorkingTreeStatus
from stacktrace.monitors.vcs import GitMonitor
from stacktrace.observability.metrics import reset_instruments
from stacktrace.store.timeline import TimelineStore
from stacktrace.types.config import FileMonitorConfig, GitMonitorConfig


class FakeObserver:
    """Stands in for ``watchdog.observers.Observer``.

    Events are delivered by calling :meth:`emit`, which dispatches on the
    calling thread exactly like the real observer thread would.

    Usage:
        observer = FakeObserver()
        monitor = FileMonitor(store, observer_factory=lambda: observer)
        await monitor.start_watching(project, session_id)
        await observer.emit(FileCreatedEvent(str(project / "a.py")))
    """

    def __init__(self, *, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.handler: Any = None
        self.path: str | None = None
        self.recursive = False
        self.started = False
        self.stopped = False
        self.joined = False

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.handler = handler
        self.path = path
        self.recursive = recursive

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        self.joined = True

    async def emit(self, *events: FileSystemEvent) -> None:
        """Dispatch events and let the loop run the forwarded callbacks."""
        for event in events:
            self.handler.dispatch(event)
        await asyncio.sleep(0)
        await asyncio.sleep(0)


class FakeGitRepository:
    """A scripted git repository.

    ``commits`` is newest first, like ``git log``. Set ``failures[step]`` to
    an exception to make one step raise; steps are ``branch``, ``log``,
    ``show`` and ``status``.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        is_repo: bool = True,
        branch: str = "main",
        commits: list[CommitInfo] | None = None,
    ) -> None:
        self.path = path
        self.is_repo = is_repo
        self.branch = branch
        self.commits: list[CommitInfo] = list(commits or [])
        self.files: dict[str, list[str]] = {}
        self.working_tree = WorkingTreeStatus()
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    def commit(self, commit_hash: str, message: str, files: list[str] | None = None) -> None:
        self.commits.insert(0, CommitInfo(hash=commit_hash, message=message))
        self.files[commit_hash] = list(files or [])

    def _step(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    async def is_repository(self) -> bool:
        return self.is_repo

    async def current_branch(self) -> str:
        self._step("branch")
        return self.branch

    async def recent_commits(self, count: int = 10) -> list[CommitInfo]:
        self._step("log")
        return self.commits[:count]

    async def commit_files(self, commit_hash: str) -> list[str]:
        self._step("show")
        return self.files.get(commit_hash, [])

    async def status(self) -> WorkingTreeStatus:
        self._step("status")
        return self.working_tree


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_instruments()
    yield
    reset_instruments()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty project directory."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> AsyncIterator[TimelineStore]:
    s = TimelineStore(tmp_path / "data" / "stacktrace.db")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def observer() -> FakeObserver:
    return FakeObserver()


@pytest.fixture
def fake_repo() -> FakeGitRepository:
    return FakeGitRepository(commits=[CommitInfo(hash="c1", message="Initial commit")])


@pytest.fixture
def file_monitor(store: TimelineStore, observer: FakeObserver) -> FileMonitor:
    """A file monitor with no debounce delay and a long snapshot interval."""
    return FileMonitor(
        store,
        FileMonitorConfig(snapshot_interval=3600, stability_threshold_ms=0),
        observer_factory=lambda: observer,
    )


@pytest.fixture
def git_monitor(store: TimelineStore, fake_repo: FakeGitRepository) -> GitMonitor:
    return GitMonitor(
        store,
        GitMonitorConfig(poll_interval=3600),
        repository_factory=lambda path: fake_repo,
    )
