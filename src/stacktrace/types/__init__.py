"""Type definitions for StackTrace."""

from stacktrace.types.config import FileMonitorConfig, GitMonitorConfig, TrackerConfig
from stacktrace.types.monitors import (
    CaptureFailure,
    FileMonitorStatus,
    FlushResult,
    GitMonitorStatus,
    PendingChange,
    PollResult,
    SessionStatus,
)
from stacktrace.types.session import (
    ChangeKind,
    Session,
    SessionState,
    SessionStats,
    Snapshot,
    SnapshotRecord,
    StartResult,
    StopResult,
    TrackingContext,
    VcsEvent,
    VcsEventKind,
    VcsEventRecord,
)

__all__ = [
    "CaptureFailure",
    "ChangeKind",
    "FileMonitorConfig",
    "FileMonitorStatus",
    "FlushResult",
    "GitMonitorConfig",
    "GitMonitorStatus",
    "PendingChange",
    "PollResult",
    "Session",
    "SessionState",
    "SessionStats",
    "SessionStatus",
    "Snapshot",
    "SnapshotRecord",
    "StartResult",
    "StopResult",
    "TrackerConfig",
    "TrackingContext",
    "VcsEvent",
    "VcsEventKind",
    "VcsEventRecord",
]
