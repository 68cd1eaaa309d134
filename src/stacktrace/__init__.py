"""StackTrace — developer activity tracker.

Records a timeline of file changes and git activity for a project while a
tracking session is active.

Usage:
    from stacktrace import SessionManager, load_config

    async with SessionManager(load_config()) as manager:
        result = await manager.start_session(".")
        ...
        await manager.stop_session()
"""

from stacktrace.core.config import load_config
from stacktrace.core.session import SessionManager, format_duration
from stacktrace.errors import (
    GitCommandError,
    MonitorAttachFailure,
    PathNotFound,
    SessionConflict,
    StackTraceError,
    StoreError,
    TransientCaptureError,
)
from stacktrace.store.timeline import TimelineStore
from stacktrace.types import (
    ChangeKind,
    Session,
    SessionState,
    SessionStats,
    SessionStatus,
    Snapshot,
    StartResult,
    StopResult,
    TrackerConfig,
    TrackingContext,
    VcsEvent,
    VcsEventKind,
)

__version__ = "0.1.0"

__all__ = [
    # Core API
    "SessionManager",
    "TimelineStore",
    "format_duration",
    "load_config",
    # Types
    "ChangeKind",
    "Session",
    "SessionState",
    "SessionStats",
    "SessionStatus",
    "Snapshot",
    "StartResult",
    "StopResult",
    "TrackerConfig",
    "TrackingContext",
    "VcsEvent",
    "VcsEventKind",
    # Errors
    "GitCommandError",
    "MonitorAttachFailure",
    "PathNotFound",
    "SessionConflict",
    "StackTraceError",
    "StoreError",
    "TransientCaptureError",
]
