"""Configuration types for StackTrace."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


def default_db_path() -> Path:
    """Location of the shared timeline database."""
    return Path.home() / ".stacktrace" / "stacktrace.db"


@dataclass(frozen=True, slots=True)
class FileMonitorConfig:
    """Configuration for the file activity monitor."""

    snapshot_interval: float = 30 * 60  # seconds
    stability_threshold_ms: int = 2000
    ignore_patterns: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class GitMonitorConfig:
    """Configuration for the version-control monitor."""

    poll_interval: float = 5 * 60  # seconds
    commit_window: int = 5


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    """Top-level configuration for a tracking process."""

    db_path: Path = field(default_factory=default_db_path)
    files: FileMonitorConfig = field(default_factory=FileMonitorConfig)
    git: GitMonitorConfig = field(default_factory=GitMonitorConfig)
