"""TimelineStore — SQLite persistence for sessions, snapshots and git events."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite

from stacktrace.errors import StoreError
from stacktrace.types.session import (
    ChangeKind,
    Session,
    SessionState,
    SessionStats,
    Snapshot,
    SnapshotRecord,
    VcsEvent,
    VcsEventKind,
    VcsEventRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_path TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT,
    status TEXT NOT NULL DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    file_path TEXT NOT NULL,
    file_size INTEGER,
    last_modified TEXT,
    change_type TEXT,
    FOREIGN KEY (session_id) REFERENCES sessions(id)
);

CREATE TABLE IF NOT EXISTS git_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    event_type TEXT NOT NULL,
    branch_name TEXT,
    commit_hash TEXT,
    commit_message TEXT,
    files_changed TEXT,
    FOREIGN KEY (session_id) REFERENCES sessions(id)
);

CREATE TABLE IF NOT EXISTS browser_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    url TEXT NOT NULL,
    title TEXT,
    domain TEXT,
    category TEXT,
    FOREIGN KEY (session_id) REFERENCES sessions(id)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_single_active
    ON sessions(status) WHERE status = 'active';
CREATE INDEX IF NOT EXISTS idx_snapshots_session ON snapshots(session_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_git_events_session ON git_events(session_id, timestamp);
"""


def _now() -> datetime:
    return datetime.now(UTC)


def _stamp(value: datetime) -> str:
    """Fixed-width UTC timestamp so text ordering matches time ordering."""
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _row_to_session(row: Any) -> Session:
    return Session(
        id=row["id"],
        project_path=row["project_path"],
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=_parse_ts(row["end_time"]),
        status=SessionState(row["status"]),
    )


def _row_to_snapshot(row: Any) -> Snapshot:
    return Snapshot(
        id=row["id"],
        session_id=row["session_id"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        file_path=row["file_path"],
        change_type=ChangeKind(row["change_type"]),
        file_size=row["file_size"],
        last_modified=_parse_ts(row["last_modified"]),
    )


def _row_to_event(row: Any) -> VcsEvent:
    files = row["files_changed"]
    return VcsEvent(
        id=row["id"],
        session_id=row["session_id"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        event_type=VcsEventKind(row["event_type"]),
        branch_name=row["branch_name"],
        commit_hash=row["commit_hash"],
        message=row["commit_message"],
        files_changed=json.loads(files) if files is not None else None,
    )


class TimelineStore:
    """Durable timeline of tracking sessions.

    A pure data-access layer: every write is its own single-statement
    transaction, so a batch of snapshot writes can be partially persisted if
    one of them fails. Callers treat that as an accepted property.

    Writes are serialized through an internal lock; reads go straight to the
    aiosqlite connection, which runs all statements on one worker thread.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    # -- Lifecycle ---------------------------------------------------------

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def initialize(self) -> None:
        """Open the database and create the schema. Safe to call repeatedly."""
        if self._conn is not None:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(self._db_path), timeout=10.0)
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"Database initialization failed: {exc}") from exc
        try:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.executescript(SCHEMA)
            await conn.commit()
        except sqlite3.Error as exc:
            await conn.close()
            raise StoreError(f"Database initialization failed: {exc}") from exc
        self._conn = conn
        logger.debug("Timeline store opened at %s", self._db_path)

    async def close(self) -> None:
        """Close the connection. No-op when already closed."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            await conn.close()
        except sqlite3.Error as exc:
            logger.warning("Error closing timeline store: %s", exc)

    async def __aenter__(self) -> TimelineStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @asynccontextmanager
    async def _operation(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Yield the open connection, wrapping driver errors in StoreError."""
        if self._conn is None:
            raise StoreError(f"Failed to {operation}: store is not initialized")
        try:
            yield self._conn
        except (sqlite3.Error, ValueError) as exc:
            raise StoreError(f"Failed to {operation}: {exc}") from exc

    async def _write(self, operation: str, sql: str, params: tuple[Any, ...]) -> aiosqlite.Cursor:
        async with self._write_lock, self._operation(operation) as conn:
            try:
                cursor = await conn.execute(sql, params)
                await conn.commit()
            except sqlite3.Error:
                await conn.rollback()
                raise
            return cursor

    # -- Sessions ----------------------------------------------------------

    async def create_session(self, project_path: str) -> int:
        """Insert an active session row and return its id."""
        cursor = await self._write(
            "create session",
            "INSERT INTO sessions (project_path, start_time, status) VALUES (?, ?, ?)",
            (project_path, _stamp(_now()), SessionState.ACTIVE.value),
        )
        return int(cursor.lastrowid)

    async def end_session(self, session_id: int) -> bool:
        """Mark an active session completed. Returns False if none matched."""
        cursor = await self._write(
            "end session",
            "UPDATE sessions SET end_time = ?, status = ? WHERE id = ? AND status = ?",
            (
                _stamp(_now()),
                SessionState.COMPLETED.value,
                session_id,
                SessionState.ACTIVE.value,
            ),
        )
        return cursor.rowcount > 0

    async def get_active_session(self) -> Session | None:
        async with self._operation("get active session") as conn:
            async with conn.execute(
                "SELECT * FROM sessions WHERE status = ? ORDER BY start_time DESC LIMIT 1",
                (SessionState.ACTIVE.value,),
            ) as cursor:
                row = await cursor.fetchone()
            return _row_to_session(row) if row else None

    async def get_session(self, session_id: int) -> Session | None:
        async with self._operation("get session") as conn:
            async with conn.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,),
            ) as cursor:
                row = await cursor.fetchone()
            return _row_to_session(row) if row else None

    async def list_sessions(self, limit: int = 20) -> list[Session]:
        """Most recent sessions first."""
        async with self._operation("list sessions") as conn:
            async with conn.execute(
                "SELECT * FROM sessions ORDER BY start_time DESC, id DESC LIMIT ?",
                (limit,),
            ) as cursor:
                rows = await cursor.fetchall()
            return [_row_to_session(r) for r in rows]

    async def session_stats(self, session_id: int) -> SessionStats:
        async with self._operation("get session stats") as conn:
            async with conn.execute(
                "SELECT COUNT(*) FROM snapshots WHERE session_id = ?", (session_id,),
            ) as cursor:
                snapshots = (await cursor.fetchone())[0]
            async with conn.execute(
                "SELECT COUNT(*) FROM git_events WHERE session_id = ?", (session_id,),
            ) as cursor:
                git_events = (await cursor.fetchone())[0]
        return SessionStats(snapshots=snapshots, git_events=git_events)

    # -- Timeline writes ---------------------------------------------------

    async def append_snapshot(self, session_id: int, record: SnapshotRecord) -> int:
        last_modified = _stamp(record.last_modified) if record.last_modified else None
        cursor = await self._write(
            "insert snapshot",
            "INSERT INTO snapshots "
            "(session_id, timestamp, file_path, file_size, last_modified, change_type) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                session_id,
                _stamp(_now()),
                record.file_path,
                record.file_size,
                last_modified,
                record.change_type.value,
            ),
        )
        return int(cursor.lastrowid)

    async def append_vcs_event(self, session_id: int, record: VcsEventRecord) -> int:
        files = json.dumps(record.files_changed) if record.files_changed is not None else None
        cursor = await self._write(
            "insert git event",
            "INSERT INTO git_events "
            "(session_id, timestamp, event_type, branch_name, commit_hash, "
            "commit_message, files_changed) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                session_id,
                _stamp(_now()),
                record.event_type.value,
                record.branch_name,
                record.commit_hash,
                record.message,
                files,
            ),
        )
        return int(cursor.lastrowid)

    # -- Timeline reads ----------------------------------------------------

    async def _select_timeline(
        self,
        operation: str,
        table: str,
        session_id: int,
        limit: int | None,
        since: datetime | None,
        until: datetime | None,
        convert: Callable[[Any], T],
    ) -> list[T]:
        """Rows for a session in chronological order, converted with *convert*.

        With *limit*, the most recent *limit* rows are returned, still oldest
        first.
        """
        clauses = ["session_id = ?"]
        params: list[Any] = [session_id]
        if since is not None:
            clauses.append("timestamp >= ?")
            params.append(_stamp(since))
        if until is not None:
            clauses.append("timestamp <= ?")
            params.append(_stamp(until))

        sql = f"SELECT * FROM {table} WHERE {' AND '.join(clauses)} ORDER BY timestamp DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        async with self._operation(operation) as conn:
            async with conn.execute(sql, tuple(params)) as cursor:
                rows = await cursor.fetchall()
            return [convert(r) for r in reversed(rows)]

    async def list_snapshots(
        self,
        session_id: int,
        limit: int | None = None,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[Snapshot]:
        return await self._select_timeline(
            "list snapshots", "snapshots", session_id, limit, since, until, _row_to_snapshot,
        )

    async def list_vcs_events(
        self,
        session_id: int,
        limit: int | None = None,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[VcsEvent]:
        return await self._select_timeline(
            "list git events", "git_events", session_id, limit, since, until, _row_to_event,
        )
