"""CLI entry point for StackTrace."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from stacktrace.cli.output import (
    print_error,
    render_sessions,
    render_start,
    render_status,
    render_stop,
    render_timeline,
    status_to_json,
)
from stacktrace.core.config import load_config
from stacktrace.core.session import SessionManager
from stacktrace.errors import StackTraceError
from stacktrace.store.timeline import TimelineStore
from stacktrace.types.config import TrackerConfig

logger = logging.getLogger(__name__)

# How often the foreground tracker checks whether the session was stopped elsewhere.
ACTIVE_CHECK_INTERVAL = 5.0


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _config(ctx: click.Context, cwd: str | Path | None = None) -> TrackerConfig:
    return load_config(cwd=cwd or Path.cwd(), db_path=ctx.obj.get("db"))


@click.group()
@click.option("--db", default=None, type=click.Path(dir_okay=False), help="Timeline database path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.version_option(package_name="stacktrace")
@click.pass_context
def cli(ctx: click.Context, db: str | None, verbose: bool) -> None:
    """StackTrace -- developer activity tracker.

    \b
    Usage:
      stacktrace start [PROJECT_PATH]     (tracks until Ctrl-C)
      stacktrace status
      stacktrace stop
      stacktrace sessions list
      stacktrace timeline SESSION_ID
    """
    ctx.ensure_object(dict)
    ctx.obj["db"] = db
    _configure_logging(verbose)


# -- start ----------------------------------------------------------------


async def track_until_stopped(
    manager: SessionManager,
    stop_event: asyncio.Event,
    *,
    check_interval: float = ACTIVE_CHECK_INTERVAL,
) -> bool:
    """Wait until *stop_event* fires or the session is ended elsewhere.

    Returns True when the session is still active and should be stopped by
    this process.

    When another process ends the session, this process still detaches its
    monitors afterwards. The final file flush and the git ``session_end``
    event are written then, so their timestamps can fall after the session's
    ``end_time``. Read a session's rows by session id, not by its time bounds.
    """
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=check_interval)
        except TimeoutError:
            if not await manager.is_session_active():
                logger.info("Session was stopped by another process")
                return False
    return True


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or not on the main thread.
            logger.debug("Signal handler for %s unavailable", sig.name)


async def _run_start(config: TrackerConfig, project_path: str, console: Console) -> int:
    err = Console(stderr=True)
    async with SessionManager(config) as manager:
        try:
            result = await manager.start_session(project_path)
        except StackTraceError as exc:
            print_error(err, str(exc))
            return 1

        render_start(console, result)
        console.print("Tracking... press Ctrl-C to stop.", style="dim")

        stop_event = asyncio.Event()
        _install_signal_handlers(stop_event)
        try:
            still_active = await track_until_stopped(manager, stop_event)
        except asyncio.CancelledError:
            await manager.stop_session()
            raise

        if still_active:
            render_stop(console, await manager.stop_session())
        else:
            console.print("Session was stopped from another terminal.", style="dim")
    return 0


@cli.command()
@click.argument("project_path", default=".", type=click.Path(file_okay=False))
@click.pass_context
def start(ctx: click.Context, project_path: str) -> None:
    """Start tracking PROJECT_PATH in the foreground."""
    config = _config(ctx, project_path)
    try:
        code = asyncio.run(_run_start(config, project_path, Console()))
    except StackTraceError as e:
        print_error(Console(stderr=True), str(e))
        raise SystemExit(1)
    if code:
        raise SystemExit(code)


# -- stop / status --------------------------------------------------------


@cli.command()
@click.pass_context
def stop(ctx: click.Context) -> None:
    """Stop the active tracking session."""
    config = _config(ctx)

    async def _run():
        async with SessionManager(config) as manager:
            return await manager.stop_session()

    try:
        result = asyncio.run(_run())
    except StackTraceError as e:
        print_error(Console(stderr=True), str(e))
        raise SystemExit(1)
    render_stop(Console(), result)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Emit machine-readable JSON")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the active session, if any."""
    config = _config(ctx)

    async def _run():
        async with SessionManager(config) as manager:
            return await manager.get_session_status()

    try:
        report = asyncio.run(_run())
    except StackTraceError as e:
        print_error(Console(stderr=True), str(e))
        raise SystemExit(1)

    if as_json:
        click.echo(status_to_json(report))
    else:
        render_status(Console(), report)


# -- history --------------------------------------------------------------


@cli.group()
def sessions() -> None:
    """Browse recorded sessions."""


@sessions.command("list")
@click.option("--limit", "-n", default=20, help="Max sessions to show")
@click.pass_context
def sessions_list(ctx: click.Context, limit: int) -> None:
    """List recent sessions, newest first."""
    config = _config(ctx)

    async def _run():
        async with TimelineStore(config.db_path) as store:
            return await store.list_sessions(limit)

    try:
        rows = asyncio.run(_run())
    except StackTraceError as e:
        print_error(Console(stderr=True), str(e))
        raise SystemExit(1)
    render_sessions(Console(), rows)


@cli.command()
@click.argument("session_id", type=int)
@click.option("--limit", "-n", default=50, help="Max rows of each kind to show")
@click.pass_context
def timeline(ctx: click.Context, session_id: int, limit: int) -> None:
    """Show snapshots and git events recorded for SESSION_ID."""
    config = _config(ctx)

    async def _run():
        async with TimelineStore(config.db_path) as store:
            session = await store.get_session(session_id)
            if session is None:
                return None, [], []
            snapshots = await store.list_snapshots(session_id, limit)
            events = await store.list_vcs_events(session_id, limit)
            return session, snapshots, events

    try:
        session, snapshots, events = asyncio.run(_run())
    except StackTraceError as e:
        print_error(Console(stderr=True), str(e))
        raise SystemExit(1)

    if session is None:
        print_error(Console(stderr=True), f"Session not found: {session_id}")
        raise SystemExit(1)
    render_timeline(Console(), session, snapshots, events)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
