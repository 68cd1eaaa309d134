"""SessionManager — tracking session lifecycle and monitor coordination."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path

from stacktrace.errors import MonitorAttachFailure, PathNotFound, SessionConflict, StoreError
from stacktrace.monitors.files import FileMonitor
from stacktrace.monitors.vcs import GitMonitor
from stacktrace.store.timeline import TimelineStore
from stacktrace.types.config import TrackerConfig
from stacktrace.types.monitors import SessionStatus
from stacktrace.types.session import StartResult, StopResult, TrackingContext

logger = logging.getLogger(__name__)

MonitorStarter = Callable[[str, int], Awaitable[bool]]


def format_duration(seconds: int) -> str:
    """Format a duration as ``1h 2m 3s``, dropping leading zero units."""
    hours, rest = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class SessionManager:
    """Coordinates one tracking session across the store and both monitors.

    The store is the source of truth for whether a session is active; the
    manager additionally holds a :class:`TrackingContext` for the session it
    started itself, which is what its monitors are attached to.

    Only invalid input, conflicts and store failures are raised. Monitor
    problems are reported as warnings on the returned results.

    Usage::

        async with SessionManager(load_config()) as manager:
            result = await manager.start_session("/path/to/project")
            ...
            await manager.stop_session()
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        store: TimelineStore | None = None,
        file_monitor: FileMonitor | None = None,
        git_monitor: GitMonitor | None = None,
    ) -> None:
        self._config = config or TrackerConfig()
        self._store = store or TimelineStore(self._config.db_path)
        self._file_monitor = file_monitor or FileMonitor(
            self._store, self._config.files, ignore_files=(self._store.db_path,),
        )
        self._git_monitor = git_monitor or GitMonitor(self._store, self._config.git)
        self._context: TrackingContext | None = None

    # -- Context manager support ------------------------------------------

    async def __aenter__(self) -> SessionManager:
        await self.initialize()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.cleanup()

    # -- Properties -------------------------------------------------------

    @property
    def store(self) -> TimelineStore:
        return self._store

    @property
    def current_context(self) -> TrackingContext | None:
        return self._context

    async def initialize(self) -> None:
        await self._store.initialize()

    # -- Lifecycle --------------------------------------------------------

    async def start_session(self, project_path: str | Path) -> StartResult:
        """Open a session for *project_path* and attach both monitors.

        Raises:
            PathNotFound: *project_path* does not exist.
            SessionConflict: another session is already active.
            StoreError: the session row could not be written.
        """
        await self.initialize()

        resolved = Path(project_path).expanduser().resolve()
        if not resolved.exists():
            raise PathNotFound(str(resolved))

        active = await self._store.get_active_session()
        if active is not None:
            raise SessionConflict(active.id)

        try:
            session_id = await self._store.create_session(str(resolved))
        except StoreError:
            # The single-active index rejects a concurrent start from another process.
            active = await self._store.get_active_session()
            if active is not None:
                raise SessionConflict(active.id) from None
            raise

        session = await self._store.get_session(session_id)
        start_time = session.start_time if session else datetime.now(UTC)
        context = TrackingContext(
            session_id=session_id, project_path=str(resolved), start_time=start_time,
        )
        self._context = context

        warnings = await self._attach_monitors(context)
        logger.info("Started session %d for %s", session_id, resolved)
        return StartResult(
            success=True,
            session_id=session_id,
            project_path=str(resolved),
            start_time=start_time,
            message=f"Started tracking session for project: {resolved}",
            context=context,
            warnings=warnings,
        )

    async def stop_session(self) -> StopResult:
        """Stop monitors and close the active session.

        With no active session this returns ``success=False`` rather than
        raising.
        """
        await self.initialize()

        active = await self._store.get_active_session()
        if active is None:
            return StopResult(success=False, message="No active session to stop")

        warnings = await self._detach_monitors()
        stopped = await self._store.end_session(active.id)
        self._context = None

        if not stopped:
            return StopResult(
                success=False,
                message="Failed to stop session",
                session_id=active.id,
                warnings=warnings,
            )
        logger.info("Stopped session %d", active.id)
        return StopResult(
            success=True,
            message=f"Stopped tracking session (ID: {active.id})",
            session_id=active.id,
            warnings=warnings,
        )

    async def get_session_status(self) -> SessionStatus:
        await self.initialize()

        active = await self._store.get_active_session()
        if active is None:
            return SessionStatus(active=False, message="No active tracking session")

        elapsed = int((datetime.now(UTC) - active.start_time).total_seconds())
        elapsed = max(0, elapsed)
        stats = await self._store.session_stats(active.id)
        return SessionStatus(
            active=True,
            message=f"Tracking {active.project_path}",
            session_id=active.id,
            project_path=active.project_path,
            start_time=active.start_time,
            duration=format_duration(elapsed),
            duration_seconds=elapsed,
            stats=stats,
            file_monitor=self._file_monitor.status(),
            git_monitor=self._git_monitor.status(),
        )

    async def is_session_active(self) -> bool:
        await self.initialize()
        return await self._store.get_active_session() is not None

    async def cleanup(self) -> None:
        """Stop any running monitors and release the store. Idempotent."""
        await self._detach_monitors()
        self._context = None
        await self._store.close()

    # -- Monitors ---------------------------------------------------------

    async def _attach_monitors(self, context: TrackingContext) -> list[str]:
        warnings: list[str] = []
        starters: list[tuple[str, MonitorStarter]] = [
            ("File", self._file_monitor.start_watching),
            ("Git", self._git_monitor.start_monitoring),
        ]
        for label, start in starters:
            try:
                await self._attach(label, start, context)
            except MonitorAttachFailure as failure:
                logger.warning("%s", failure)
                warnings.append(str(failure))
        return warnings

    @staticmethod
    async def _attach(label: str, start: MonitorStarter, context: TrackingContext) -> None:
        try:
            attached = await start(context.project_path, context.session_id)
        except Exception as exc:
            raise MonitorAttachFailure(f"{label} monitoring failed to start: {exc}") from exc
        if not attached:
            raise MonitorAttachFailure(
                f"{label} monitoring unavailable for {context.project_path}"
            )

    async def _detach_monitors(self) -> list[str]:
        """Stop both monitors independently; failures become warnings."""
        warnings: list[str] = []
        stoppers: list[tuple[str, Callable[[], Awaitable[bool]]]] = [
            ("File", self._file_monitor.stop_watching),
            ("Git", self._git_monitor.stop_monitoring),
        ]
        for label, stop in stoppers:
            try:
                await stop()
            except Exception as exc:
                message = f"{label} monitoring failed to stop cleanly: {exc}"
                logger.warning("%s", message)
                warnings.append(message)
        return warnings
