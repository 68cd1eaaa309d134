"""Tests for the periodic task and path filter shared by the monitors."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from stacktrace.monitors.base import RepeatingTask
from stacktrace.monitors.ignore import PathFilter


class TestRepeatingTask:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            RepeatingTask(lambda: asyncio.sleep(0), 0)

    @pytest.mark.asyncio
    async def test_runs_periodically(self):
        calls = 0

        async def tick():
            nonlocal calls
            calls += 1

        task = RepeatingTask(tick, 0.02, name="tick")
        task.start()
        await asyncio.sleep(0.15)
        await task.stop()
        assert calls >= 2
        assert task.runs == calls
        assert not task.running

    @pytest.mark.asyncio
    async def test_no_run_before_first_interval(self):
        calls = 0

        async def tick():
            nonlocal calls
            calls += 1

        task = RepeatingTask(tick, 10)
        task.start()
        await asyncio.sleep(0.01)
        await task.stop()
        assert calls == 0

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_run(self):
        started = asyncio.Event()
        finished = False

        async def slow():
            nonlocal finished
            started.set()
            await asyncio.sleep(0.05)
            finished = True

        task = RepeatingTask(slow, 0.01)
        task.start()
        await started.wait()
        await task.stop()
        assert finished

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_running(self, caplog):
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            raise RuntimeError("transient")

        task = RepeatingTask(flaky, 0.02, name="flaky")
        task.start()
        await asyncio.sleep(0.15)
        await task.stop()
        assert calls >= 2
        assert "Periodic task flaky failed" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        await RepeatingTask(lambda: asyncio.sleep(0), 1).stop()


class TestPathFilter:
    @pytest.fixture
    def root(self, tmp_path: Path) -> Path:
        return tmp_path.resolve()

    def test_plain_source_kept(self, root):
        f = PathFilter(root)
        assert not f.is_ignored("src/app.py")
        assert not f.is_ignored("README.md")

    def test_hidden_and_vcs(self, root):
        f = PathFilter(root)
        assert f.is_ignored(".git/objects/ab/cdef")
        assert f.is_ignored("src/.cache/x")
        assert f.is_ignored(".env")

    def test_dependency_dirs(self, root):
        f = PathFilter(root)
        for path in ("node_modules/a/b.js", "dist/app.js", "build/x.o",
                     "coverage/lcov.info", "pkg/__pycache__/m.pyc", "venv/bin/python"):
            assert f.is_ignored(path), path

    def test_database_files(self, root):
        f = PathFilter(root)
        assert f.is_ignored("stacktrace.db")
        assert f.is_ignored("data/app.db-journal")

    def test_root_itself(self, root):
        assert PathFilter(root).is_ignored(".")
        assert PathFilter(root).is_ignored("")

    def test_extra_patterns(self, root):
        f = PathFilter(root, patterns=("*.log", "generated/*"))
        assert f.is_ignored("server.log")
        assert f.is_ignored("generated/schema.py")
        assert not f.is_ignored("src/generated.py")

    def test_ignore_files_inside_root(self, root):
        f = PathFilter(root, ignore_files=[root / "state" / "timeline.sqlite"])
        assert f.is_ignored("state/timeline.sqlite")
        assert f.is_ignored("state/timeline.sqlite-wal")
        assert not f.is_ignored("state/other.sqlite")

    def test_ignore_files_outside_root(self, root, tmp_path):
        f = PathFilter(root / "project", ignore_files=[tmp_path / "elsewhere.sqlite"])
        assert not f.is_ignored("elsewhere.sqlite")
