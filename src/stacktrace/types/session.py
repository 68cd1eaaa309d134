"""Session and timeline record types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SessionState(Enum):
    """Lifecycle state of a stored session."""

    ACTIVE = "active"
    COMPLETED = "completed"


class ChangeKind(Enum):
    """Kind of file change captured in a snapshot."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class VcsEventKind(Enum):
    """Kinds of version-control events."""

    SESSION_START = "session_start"
    SESSION_END = "session_end"
    BRANCH_CHANGE = "branch_change"
    COMMIT = "commit"
    STATUS_CHANGE = "status_change"


@dataclass(frozen=True, slots=True)
class Session:
    """A stored tracking session."""

    id: int
    project_path: str
    start_time: datetime
    end_time: datetime | None = None
    status: SessionState = SessionState.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status is SessionState.ACTIVE


@dataclass(frozen=True, slots=True)
class SessionStats:
    """Row counts recorded for a session."""

    snapshots: int = 0
    git_events: int = 0


@dataclass(frozen=True, slots=True)
class SnapshotRecord:
    """One file change to be appended to a snapshot batch."""

    file_path: str
    change_type: ChangeKind
    file_size: int | None = None
    last_modified: datetime | None = None


@dataclass(frozen=True, slots=True)
class Snapshot:
    """A stored snapshot row."""

    id: int
    session_id: int
    timestamp: datetime
    file_path: str
    change_type: ChangeKind
    file_size: int | None = None
    last_modified: datetime | None = None


@dataclass(frozen=True, slots=True)
class VcsEventRecord:
    """A version-control event to be appended to the timeline."""

    event_type: VcsEventKind
    branch_name: str | None = None
    commit_hash: str | None = None
    message: str | None = None
    files_changed: Any = None  # list of paths or {category: [paths]}


@dataclass(frozen=True, slots=True)
class VcsEvent:
    """A stored version-control event row."""

    id: int
    session_id: int
    timestamp: datetime
    event_type: VcsEventKind
    branch_name: str | None = None
    commit_hash: str | None = None
    message: str | None = None
    files_changed: Any = None


@dataclass(frozen=True, slots=True)
class TrackingContext:
    """The session a running coordinator is currently tracking."""

    session_id: int
    project_path: str
    start_time: datetime


@dataclass(slots=True)
class StartResult:
    """Outcome of starting a session."""

    success: bool
    session_id: int
    project_path: str
    start_time: datetime
    message: str
    context: TrackingContext | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class StopResult:
    """Outcome of stopping a session.

    ``success=False`` with no session id means there was nothing to stop.
    """

    success: bool
    message: str
    session_id: int | None = None
    warnings: list[str] = field(default_factory=list)
