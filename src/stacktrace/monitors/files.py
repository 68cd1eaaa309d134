"""FileMonitor — watches a project tree and flushes coalesced snapshots."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from stacktrace.errors import StoreError
from stacktrace.monitors.base import RepeatingTask
from stacktrace.monitors.ignore import PathFilter
from stacktrace.observability.metrics import (
    record_capture_failure,
    record_snapshots,
    timed_operation,
)
from stacktrace.store.timeline import TimelineStore
from stacktrace.types.config import FileMonitorConfig
from stacktrace.types.monitors import (
    CaptureFailure,
    FileMonitorStatus,
    FlushResult,
    PendingChange,
)
from stacktrace.types.session import ChangeKind, SnapshotRecord

logger = logging.getLogger(__name__)


class _ChangeHandler(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread onto the event loop."""

    def __init__(self, monitor: FileMonitor, loop: asyncio.AbstractEventLoop) -> None:
        self._monitor = monitor
        self._loop = loop

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, ChangeKind.ADDED)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, ChangeKind.MODIFIED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, ChangeKind.DELETED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path, ChangeKind.DELETED)
            self._forward(event.dest_path, ChangeKind.ADDED)

    def _forward(self, path: str | bytes, kind: ChangeKind) -> None:
        try:
            self._loop.call_soon_threadsafe(self._monitor._on_raw_event, os.fsdecode(path), kind)
        except RuntimeError:
            # Loop already closed; the monitor is shutting down.
            logger.debug("Dropped %s event for %s after loop shutdown", kind.value, path)


class FileMonitor:
    """Watches a project directory and records file changes as snapshots.

    Raw events are debounced per path until the file has been quiescent for
    the stability threshold, then coalesced into a pending mapping keyed by
    relative path that keeps only the most recent change kind. A flush takes
    the whole mapping in one swap, before its first await, so events that
    arrive while the batch is being written land in the fresh mapping and are
    neither lost nor written twice.

    All state is touched only on the event loop; the watchdog observer thread
    hands events over with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        store: TimelineStore,
        config: FileMonitorConfig | None = None,
        *,
        ignore_files: Iterable[Path] = (),
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self._store = store
        self._config = config or FileMonitorConfig()
        self._ignore_files = tuple(ignore_files)
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._filter: PathFilter | None = None
        self._project_path: Path | None = None
        self._session_id: int | None = None
        self._watching = False
        self._pending: dict[str, PendingChange] = {}
        self._debounce: dict[str, tuple[asyncio.TimerHandle, ChangeKind]] = {}
        self._task: RepeatingTask | None = None

    # -- Properties -------------------------------------------------------

    @property
    def is_watching(self) -> bool:
        return self._watching

    def pending_changes(self) -> list[PendingChange]:
        """Changes waiting for the next flush, sorted by path."""
        return sorted(self._pending.values(), key=lambda c: c.path)

    def status(self) -> FileMonitorStatus:
        return FileMonitorStatus(
            is_watching=self._watching,
            project_path=str(self._project_path) if self._project_path else None,
            session_id=self._session_id,
            active_file_count=len(self._pending.keys() | self._debounce.keys()),
            snapshot_interval_minutes=self._config.snapshot_interval / 60,
        )

    # -- Lifecycle --------------------------------------------------------

    async def start_watching(self, project_path: str | Path, session_id: int) -> bool:
        """Begin recursive observation of *project_path*.

        Returns False when the watch cannot be established (missing path,
        permission denied, watch limit reached).
        """
        if self._watching:
            await self.stop_watching()

        root = Path(project_path).resolve()
        loop = asyncio.get_running_loop()
        try:
            observer = self._observer_factory()
            observer.schedule(_ChangeHandler(self, loop), str(root), recursive=True)
            observer.start()
        except OSError as exc:
            logger.warning("Failed to start file monitoring for %s: %s", root, exc)
            return False

        self._observer = observer
        self._loop = loop
        self._filter = PathFilter(root, self._config.ignore_patterns, self._ignore_files)
        self._project_path = root
        self._session_id = session_id
        self._watching = True

        await self.flush()

        self._task = RepeatingTask(
            self.flush, self._config.snapshot_interval, name="file-snapshot",
        )
        self._task.start()
        logger.info(
            "File monitoring started for %s (snapshots every %.0f minutes)",
            root, self._config.snapshot_interval / 60,
        )
        return True

    async def stop_watching(self) -> bool:
        """Flush a final batch and release the watcher. Safe when idle."""
        if self._task is not None:
            await self._task.stop()
            self._task = None

        if self._observer is not None:
            observer, self._observer = self._observer, None
            observer.stop()
            await asyncio.to_thread(observer.join, 5.0)

        # Files still settling are recorded with the kind they have so far.
        now = datetime.now(UTC)
        for rel_path, (handle, kind) in self._debounce.items():
            handle.cancel()
            self._pending[rel_path] = PendingChange(rel_path, kind, now)
        self._debounce.clear()

        was_watching = self._watching
        self._watching = False
        if self._session_id is not None:
            await self.flush()

        self._pending.clear()
        self._filter = None
        self._loop = None
        self._project_path = None
        self._session_id = None
        if was_watching:
            logger.info("File monitoring stopped")
        return True

    # -- Event intake -----------------------------------------------------

    def _on_raw_event(self, abs_path: str, kind: ChangeKind) -> None:
        """Handle one raw watchdog event on the event loop."""
        if not self._watching or self._project_path is None or self._loop is None:
            return
        try:
            rel_path = Path(abs_path).relative_to(self._project_path).as_posix()
        except ValueError:
            return
        if self._filter is not None and self._filter.is_ignored(rel_path):
            return

        settling = self._debounce.pop(rel_path, None)
        if settling is not None:
            settling[0].cancel()
            if settling[1] is ChangeKind.ADDED and kind is ChangeKind.MODIFIED:
                kind = ChangeKind.ADDED  # still the write of a new file

        delay = self._config.stability_threshold_ms / 1000
        if kind is ChangeKind.DELETED or delay <= 0:
            self.track_change(rel_path, kind)
            return

        handle = self._loop.call_later(delay, self._settle, rel_path)
        self._debounce[rel_path] = (handle, kind)

    def _settle(self, rel_path: str) -> None:
        entry = self._debounce.pop(rel_path, None)
        if entry is not None:
            self.track_change(rel_path, entry[1])

    def track_change(self, rel_path: str, kind: ChangeKind) -> None:
        """Record a settled change; the most recent kind for a path wins."""
        if not self._watching:
            return
        self._pending[rel_path] = PendingChange(rel_path, kind, datetime.now(UTC))

    # -- Flush ------------------------------------------------------------

    async def flush(self) -> FlushResult:
        """Write one Snapshot row per pending change.

        An empty mapping writes nothing. A file that fails to resolve or write
        is skipped and reported in the result; the rest of the batch continues.
        """
        result = FlushResult()
        if self._session_id is None or self._project_path is None:
            return result

        pending, self._pending = self._pending, {}
        if not pending:
            logger.debug("No file changes to capture in snapshot")
            return result

        session_id, root = self._session_id, self._project_path
        with timed_operation("file_flush"):
            for change in pending.values():
                try:
                    record = await self._resolve(root, change)
                    await self._store.append_snapshot(session_id, record)
                except (OSError, StoreError) as exc:
                    logger.warning("Error capturing file %s: %s", change.path, exc)
                    result.failures.append(CaptureFailure(unit=change.path, error=str(exc)))
                    record_capture_failure("files", change.path)
                    continue
                result.written += 1
                record_snapshots(1, change_type=change.change_type.value)

        logger.info("Snapshot captured: %d files", result.written)
        return result

    @staticmethod
    async def _resolve(root: Path, change: PendingChange) -> SnapshotRecord:
        if change.change_type is ChangeKind.DELETED:
            return SnapshotRecord(file_path=change.path, change_type=change.change_type)
        try:
            st = await asyncio.to_thread((root / change.path).stat)
        except FileNotFoundError:
            # Vanished between the event and the flush.
            return SnapshotRecord(file_path=change.path, change_type=change.change_type)
        return SnapshotRecord(
            file_path=change.path,
            change_type=change.change_type,
            file_size=st.st_size,
            last_modified=datetime.fromtimestamp(st.st_mtime, UTC),
        )
