"""OpenTelemetry-based metrics for StackTrace."""

from stacktrace.observability.metrics import (
    record_capture_duration,
    record_capture_failure,
    record_git_event,
    record_snapshots,
    timed_operation,
)

__all__ = [
    "record_capture_duration",
    "record_capture_failure",
    "record_git_event",
    "record_snapshots",
    "timed_operation",
]
