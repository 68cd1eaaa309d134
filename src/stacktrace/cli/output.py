"""Rich rendering for CLI results."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from stacktrace.types import (
    Session,
    SessionStatus,
    Snapshot,
    StartResult,
    StopResult,
    VcsEvent,
)

STYLE_OK = "bold #34d399"        # green
STYLE_ERROR = "bold #f87171"     # red
STYLE_WARN = "#fbbf24"           # amber
STYLE_LABEL = "bold #94a3b8"     # slate
STYLE_VALUE = "#e2e8f0"
STYLE_DIM = "dim #7c7c8a"

CHANGE_STYLES: dict[str, str] = {
    "added": "#34d399",
    "modified": "#60a5fa",
    "deleted": "#f87171",
}


def _fmt_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def print_error(console: Console, message: str) -> None:
    console.print(Text(f"Error: {message}", style=STYLE_ERROR))


def print_warnings(console: Console, warnings: list[str]) -> None:
    for warning in warnings:
        console.print(Text(f"Warning: {warning}", style=STYLE_WARN))


def render_start(console: Console, result: StartResult) -> None:
    body = Text()
    body.append("Session ID:  ", style=STYLE_LABEL)
    body.append(f"{result.session_id}\n", style=STYLE_VALUE)
    body.append("Project:     ", style=STYLE_LABEL)
    body.append(f"{result.project_path}\n", style=STYLE_VALUE)
    body.append("Started:     ", style=STYLE_LABEL)
    body.append(_fmt_time(result.start_time), style=STYLE_VALUE)
    console.print(Panel(body, title=Text(result.message, style=STYLE_OK), expand=False))
    print_warnings(console, result.warnings)


def render_stop(console: Console, result: StopResult) -> None:
    if result.success:
        style = STYLE_OK
    elif result.session_id is None:
        style = STYLE_WARN
    else:
        style = STYLE_ERROR
    console.print(Text(result.message, style=style))
    print_warnings(console, result.warnings)


def render_status(console: Console, status: SessionStatus) -> None:
    """Render a status report as a two-column table."""
    if not status.active:
        console.print(Text(status.message, style=STYLE_DIM))
        return

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(style=STYLE_LABEL)
    table.add_column(style=STYLE_VALUE)
    table.add_row("Session ID", str(status.session_id))
    table.add_row("Project", Text(status.project_path or "-"))
    table.add_row("Started", _fmt_time(status.start_time))
    table.add_row("Duration", status.duration or "-")
    table.add_row("Snapshots", str(status.stats.snapshots))
    table.add_row("Git events", str(status.stats.git_events))

    files = status.file_monitor
    if files is not None and files.is_watching:
        table.add_row(
            "File monitor",
            f"watching, {files.active_file_count} pending, "
            f"every {files.snapshot_interval_minutes:g} min",
        )
    git = status.git_monitor
    if git is not None and git.is_monitoring:
        head = (git.last_commit_hash or "-")[:8]
        table.add_row(
            "Git monitor",
            f"{git.last_branch or '-'} @ {head}, every {git.poll_interval_seconds:g}s",
        )

    console.print(Panel(table, title=Text("Tracking", style=STYLE_OK), expand=False))


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def status_to_json(status: SessionStatus) -> str:
    return json.dumps(asdict(status), default=_json_default, indent=2)


def render_sessions(console: Console, sessions: list[Session]) -> None:
    if not sessions:
        console.print(Text("No sessions found.", style=STYLE_DIM))
        return

    table = Table(header_style=STYLE_LABEL)
    table.add_column("ID", justify="right", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Started", no_wrap=True)
    table.add_column("Ended", no_wrap=True)
    table.add_column("Project", overflow="fold")
    for s in sessions:
        status_style = STYLE_OK if s.is_active else STYLE_DIM
        table.add_row(
            str(s.id),
            Text(s.status.value, style=status_style),
            _fmt_time(s.start_time),
            _fmt_time(s.end_time),
            Text(s.project_path),
        )
    console.print(table)


def _event_detail(event: VcsEvent) -> str:
    parts: list[str] = []
    if event.branch_name:
        parts.append(f"[{event.branch_name}]")
    if event.commit_hash:
        parts.append(event.commit_hash[:8])
    if event.message:
        parts.append(event.message)
    return " ".join(parts)


def render_timeline(
    console: Console,
    session: Session,
    snapshots: list[Snapshot],
    events: list[VcsEvent],
) -> None:
    """Render snapshots and VCS events for one session, merged by time."""
    rows: list[tuple[datetime, int, str, Text, Text]] = []
    for snap in snapshots:
        kind = snap.change_type.value
        size = f" ({snap.file_size} bytes)" if snap.file_size is not None else ""
        rows.append((
            snap.timestamp, 0, _fmt_time(snap.timestamp),
            Text(kind, style=CHANGE_STYLES.get(kind, STYLE_VALUE)),
            Text(f"{snap.file_path}{size}"),
        ))
    for event in events:
        rows.append((
            event.timestamp, 1, _fmt_time(event.timestamp),
            Text(event.event_type.value, style="#a78bfa"),
            Text(_event_detail(event)),
        ))
    rows.sort(key=lambda r: (r[0], r[1]))

    title = f"Session {session.id} · {session.project_path}"
    if not rows:
        console.print(Text(f"{title}: no activity recorded.", style=STYLE_DIM))
        return

    table = Table(title=Text(title), header_style=STYLE_LABEL)
    table.add_column("Time", no_wrap=True)
    table.add_column("Kind", no_wrap=True)
    table.add_column("Detail", overflow="fold")
    for _, _, when, kind_text, detail in rows:
        table.add_row(when, kind_text, detail)
    console.print(table)
