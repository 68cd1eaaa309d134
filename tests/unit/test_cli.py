"""Tests for the stacktrace CLI."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from stacktrace.cli.main import cli, track_until_stopped
from stacktrace.core.session import SessionManager
from stacktrace.store.timeline import TimelineStore
from stacktrace.types.config import TrackerConfig
from stacktrace.types.session import ChangeKind, SnapshotRecord, VcsEventKind, VcsEventRecord


@pytest.fixture
def db(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


def _invoke(db: Path, *args: str):
    return CliRunner().invoke(cli, ["--db", str(db), *args])


async def _seed(db: Path, project: str, *, end: bool = True) -> int:
    async with TimelineStore(db) as store:
        sid = await store.create_session(project)
        await store.append_snapshot(sid, SnapshotRecord("app.py", ChangeKind.ADDED, 12))
        await store.append_vcs_event(
            sid, VcsEventRecord(VcsEventKind.COMMIT, "main", "abcdef123456", "Add app"),
        )
        if end:
            await store.end_session(sid)
    return sid


class TestStatusCommand:
    def test_no_session(self, db: Path):
        result = _invoke(db, "status")
        assert result.exit_code == 0
        assert "No active tracking session" in result.output

    def test_json(self, db: Path, project: Path):
        sid = asyncio.run(_seed(db, str(project), end=False))
        result = _invoke(db, "status", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["active"] is True
        assert data["session_id"] == sid
        assert data["stats"] == {"snapshots": 1, "git_events": 1}

    def test_active_session(self, db: Path, project: Path):
        asyncio.run(_seed(db, str(project), end=False))
        result = _invoke(db, "status")
        assert result.exit_code == 0
        assert "Session ID" in result.output
        assert "Snapshots" in result.output


class TestStopCommand:
    def test_nothing_to_stop(self, db: Path):
        result = _invoke(db, "stop")
        assert result.exit_code == 0
        assert "No active session to stop" in result.output

    def test_stops_active_session(self, db: Path, project: Path):
        sid = asyncio.run(_seed(db, str(project), end=False))
        result = _invoke(db, "stop")
        assert result.exit_code == 0
        assert f"Stopped tracking session (ID: {sid})" in result.output
        assert "No active tracking session" in _invoke(db, "status").output


class TestStartCommand:
    def test_missing_path(self, db: Path, tmp_path: Path):
        result = _invoke(db, "start", str(tmp_path / "missing"))
        assert result.exit_code == 1
        assert "Project path does not exist" in result.output

    def test_conflict(self, db: Path, project: Path):
        sid = asyncio.run(_seed(db, str(project), end=False))
        result = _invoke(db, "start", str(project))
        assert result.exit_code == 1
        assert f"Session already active (ID: {sid})" in result.output

    def test_store_unavailable(self, tmp_path: Path, project: Path):
        db_dir = tmp_path / "db-is-a-dir"
        db_dir.mkdir()
        result = CliRunner().invoke(cli, ["start", str(project)], env={"STACKTRACE_DB": str(db_dir)})
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "unable to open database file" in result.output

    def test_start_then_interrupt(self, db: Path, project: Path, monkeypatch):
        async def interrupted(manager, stop_event, **kwargs):
            return True

        monkeypatch.setattr("stacktrace.cli.main.track_until_stopped", interrupted)
        result = _invoke(db, "start", str(project))
        assert result.exit_code == 0, result.output
        assert "Stopped tracking session" in result.output

        async def sessions():
            async with TimelineStore(db) as store:
                return await store.list_sessions()

        [session] = asyncio.run(sessions())
        assert not session.is_active

    def test_stopped_elsewhere(self, db: Path, project: Path, monkeypatch):
        async def ended_elsewhere(manager, stop_event, **kwargs):
            await manager.stop_session()
            return False

        monkeypatch.setattr("stacktrace.cli.main.track_until_stopped", ended_elsewhere)
        result = _invoke(db, "start", str(project))
        assert result.exit_code == 0, result.output
        assert "stopped from another terminal" in result.output


class TestHistoryCommands:
    def test_sessions_empty(self, db: Path):
        result = _invoke(db, "sessions", "list")
        assert result.exit_code == 0
        assert "No sessions found." in result.output

    def test_sessions_list(self, db: Path, project: Path):
        asyncio.run(_seed(db, str(project)))
        result = _invoke(db, "sessions", "list")
        assert result.exit_code == 0
        assert "completed" in result.output

    def test_timeline(self, db: Path, project: Path):
        sid = asyncio.run(_seed(db, str(project)))
        result = _invoke(db, "timeline", str(sid))
        assert result.exit_code == 0
        assert "app.py" in result.output
        assert "added" in result.output
        assert "commit" in result.output
        assert "abcdef12" in result.output

    def test_timeline_unknown_session(self, db: Path):
        result = _invoke(db, "timeline", "42")
        assert result.exit_code == 1
        assert "Session not found: 42" in result.output


class TestTrackUntilStopped:
    @pytest.mark.asyncio
    async def test_returns_true_on_signal(self, tmp_path: Path):
        async with SessionManager(TrackerConfig(db_path=tmp_path / "t.db")) as manager:
            stop_event = asyncio.Event()
            stop_event.set()
            assert await track_until_stopped(manager, stop_event, check_interval=0.01)

    @pytest.mark.asyncio
    async def test_returns_false_when_session_gone(self, tmp_path: Path):
        async with SessionManager(TrackerConfig(db_path=tmp_path / "t.db")) as manager:
            stop_event = asyncio.Event()
            still_active = await track_until_stopped(manager, stop_event, check_interval=0.01)
            assert still_active is False
