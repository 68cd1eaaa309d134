"""Monitor status and capture result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from stacktrace.types.session import ChangeKind, SessionStats


@dataclass(frozen=True, slots=True)
class CaptureFailure:
    """A unit of capture work that failed and was skipped."""

    unit: str  # file path, poll step name, or commit hash
    error: str


@dataclass(slots=True)
class FlushResult:
    """Aggregate outcome of one snapshot flush."""

    written: int = 0
    failures: list[CaptureFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(slots=True)
class PollResult:
    """Aggregate outcome of one version-control poll cycle."""

    events_written: int = 0
    branch_changed: bool = False
    new_commits: list[str] = field(default_factory=list)
    dirty: bool = False
    failures: list[CaptureFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True, slots=True)
class PendingChange:
    """A change waiting for the next snapshot flush."""

    path: str
    change_type: ChangeKind
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class FileMonitorStatus:
    """Live state of the file activity monitor."""

    is_watching: bool = False
    project_path: str | None = None
    session_id: int | None = None
    active_file_count: int = 0
    snapshot_interval_minutes: float = 30.0


@dataclass(frozen=True, slots=True)
class GitMonitorStatus:
    """Live state of the version-control monitor."""

    is_monitoring: bool = False
    project_path: str | None = None
    session_id: int | None = None
    last_commit_hash: str | None = None
    last_branch: str | None = None
    poll_interval_seconds: float = 300.0


@dataclass(slots=True)
class SessionStatus:
    """Live status report for the coordinator."""

    active: bool
    message: str = ""
    session_id: int | None = None
    project_path: str | None = None
    start_time: datetime | None = None
    duration: str | None = None
    duration_seconds: int = 0
    stats: SessionStats = field(default_factory=SessionStats)
    file_monitor: FileMonitorStatus | None = None
    git_monitor: GitMonitorStatus | None = None
