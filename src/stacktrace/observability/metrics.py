"""Metrics recording — counters and histograms for capture activity."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Generator

from opentelemetry import metrics

# Lazily-created instruments
_meter: Any = None
_snapshot_counter: Any = None
_event_counter: Any = None
_failure_counter: Any = None
_duration_histogram: Any = None


def _ensure_instruments() -> None:
    """Create meter and instruments on first use."""
    global _meter, _snapshot_counter, _event_counter, _failure_counter, _duration_histogram

    if _meter is not None:
        return

    _meter = metrics.get_meter("stacktrace")
    _snapshot_counter = _meter.create_counter(
        "stacktrace.snapshots",
        description="Snapshot rows written",
    )
    _event_counter = _meter.create_counter(
        "stacktrace.git_events",
        description="Version-control events written",
    )
    _failure_counter = _meter.create_counter(
        "stacktrace.capture_failures",
        description="Capture units skipped after an error",
    )
    _duration_histogram = _meter.create_histogram(
        "stacktrace.capture_duration",
        description="Duration of flushes and poll cycles",
        unit="ms",
    )


def record_snapshots(count: int, *, change_type: str = "") -> None:
    """Record snapshot rows written."""
    if count <= 0:
        return
    _ensure_instruments()
    _snapshot_counter.add(count, {"change_type": change_type})


def record_git_event(event_type: str) -> None:
    """Record one version-control event written."""
    _ensure_instruments()
    _event_counter.add(1, {"event_type": event_type})


def record_capture_failure(monitor: str, unit: str = "") -> None:
    """Record a capture unit that failed and was skipped."""
    _ensure_instruments()
    _failure_counter.add(1, {"monitor": monitor, "unit": unit})


def record_capture_duration(duration_ms: float, *, operation: str) -> None:
    """Record how long a flush or poll cycle took."""
    _ensure_instruments()
    _duration_histogram.record(duration_ms, {"operation": operation})


@contextmanager
def timed_operation(operation: str) -> Generator[None, None, None]:
    """Context manager that measures wall-clock time of a capture operation."""
    start = time.monotonic()
    try:
        yield
    finally:
        elapsed_ms = (time.monotonic() - start) * 1000
        record_capture_duration(elapsed_ms, operation=operation)


def reset_instruments() -> None:
    """Reset module-level instruments — useful for test isolation."""
    global _meter, _snapshot_counter, _event_counter, _failure_counter, _duration_histogram
    _meter = None
    _snapshot_counter = None
    _event_counter = None
    _failure_counter = None
    _duration_histogram = None
