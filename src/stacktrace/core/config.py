"""Configuration loading (TOML, env vars, .env)."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from stacktrace.types.config import (
    FileMonitorConfig,
    GitMonitorConfig,
    TrackerConfig,
    default_db_path,
)

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

CONFIG_DIRNAME = ".stacktrace"


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    if db := os.environ.get("STACKTRACE_DB"):
        config["db_path"] = db
    if interval := os.environ.get("STACKTRACE_SNAPSHOT_INTERVAL"):
        config["snapshot_interval"] = interval
    if interval := os.environ.get("STACKTRACE_POLL_INTERVAL"):
        config["poll_interval"] = interval

    return config


def load_toml_config(cwd: str | Path | None = None) -> dict[str, Any]:
    """Load configuration from .stacktrace/config.toml if it exists.

    The project directory is searched first, then ``~/.stacktrace/config.toml``.
    The first file found wins.
    """
    candidates: list[Path] = []
    if cwd:
        candidates.append(Path(cwd) / CONFIG_DIRNAME / "config.toml")
    candidates.append(Path.home() / CONFIG_DIRNAME / "config.toml")

    for toml_path in candidates:
        if not toml_path.is_file():
            continue
        try:
            with open(toml_path, "rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Failed to read config %s: %s", toml_path, exc)
    return {}


def _number(value: Any, default: float, name: str) -> float:
    """Coerce a config value to a positive number, keeping *default* on failure."""
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid value for %s: %r, using %s", name, value, default)
        return default
    if number <= 0:
        logger.warning("Non-positive value for %s: %r, using %s", name, value, default)
        return default
    return number


def _patterns(value: Any, name: str) -> tuple[str, ...]:
    """Coerce a list of glob patterns; anything else is ignored with a warning."""
    if value is None:
        return ()
    if not isinstance(value, list):
        logger.warning("Invalid value for %s: %r, expected a list of patterns", name, value)
        return ()
    return tuple(str(p) for p in value)


def load_config(cwd: str | Path | None = None, db_path: str | Path | None = None) -> TrackerConfig:
    """Resolve the effective tracker configuration.

    Precedence: explicit *db_path* > environment > TOML > defaults.
    Interval values in TOML are minutes; environment overrides are seconds.
    """
    toml = load_toml_config(cwd)
    env = load_env_config()

    files_section = toml.get("files", {})
    git_section = toml.get("git", {})
    file_defaults = FileMonitorConfig()
    git_defaults = GitMonitorConfig()

    snapshot_interval = file_defaults.snapshot_interval
    if "snapshot_interval_minutes" in files_section:
        snapshot_interval = _number(
            files_section["snapshot_interval_minutes"], snapshot_interval / 60,
            "files.snapshot_interval_minutes",
        ) * 60
    if "snapshot_interval" in env:
        snapshot_interval = _number(
            env["snapshot_interval"], snapshot_interval, "STACKTRACE_SNAPSHOT_INTERVAL",
        )

    poll_interval = git_defaults.poll_interval
    if "poll_interval_minutes" in git_section:
        poll_interval = _number(
            git_section["poll_interval_minutes"], poll_interval / 60,
            "git.poll_interval_minutes",
        ) * 60
    if "poll_interval" in env:
        poll_interval = _number(env["poll_interval"], poll_interval, "STACKTRACE_POLL_INTERVAL")

    files = FileMonitorConfig(
        snapshot_interval=snapshot_interval,
        stability_threshold_ms=int(_number(
            files_section.get("stability_threshold_ms"),
            file_defaults.stability_threshold_ms,
            "files.stability_threshold_ms",
        )),
        ignore_patterns=_patterns(files_section.get("ignore"), "files.ignore"),
    )
    git = GitMonitorConfig(
        poll_interval=poll_interval,
        commit_window=max(1, int(_number(
            git_section.get("commit_window"), git_defaults.commit_window, "git.commit_window",
        ))),
    )

    resolved_db = db_path or env.get("db_path") or toml.get("db_path")
    return TrackerConfig(
        db_path=Path(resolved_db).expanduser() if resolved_db else default_db_path(),
        files=files,
        git=git,
    )
