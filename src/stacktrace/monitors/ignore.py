"""Path filtering for the file activity monitor."""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

# Dependency and build output directories, matched on any path component.
IGNORED_DIRS = frozenset({
    "node_modules",
    "dist",
    "build",
    "coverage",
    "__pycache__",
    "venv",
})

# Database files, including our own store and its journal siblings.
IGNORED_PATTERNS = ("*.db", "*.db-journal", "*.db-wal", "*.db-shm")

_SQLITE_SUFFIXES = ("", "-journal", "-wal", "-shm")


class PathFilter:
    """Decides which project-relative paths the file monitor ignores.

    Hidden entries (which covers ``.git`` and other VCS internals), dependency
    and build directories, database files, and any extra fnmatch *patterns*
    are ignored. *ignore_files* are absolute paths that are always ignored
    when they live under *root*.
    """

    def __init__(
        self,
        root: Path,
        patterns: Iterable[str] = (),
        ignore_files: Iterable[Path] = (),
    ) -> None:
        self._root = root
        self._patterns = IGNORED_PATTERNS + tuple(patterns)
        self._ignored_files: set[str] = set()
        for path in ignore_files:
            for suffix in _SQLITE_SUFFIXES:
                candidate = Path(str(path) + suffix)
                try:
                    rel = candidate.resolve().relative_to(root)
                except ValueError:
                    continue
                self._ignored_files.add(rel.as_posix())

    @property
    def root(self) -> Path:
        return self._root

    def is_ignored(self, rel_path: str) -> bool:
        parts = PurePosixPath(rel_path).parts
        if not parts or rel_path == ".":
            return True
        if rel_path in self._ignored_files:
            return True
        for part in parts:
            if part.startswith(".") or part in IGNORED_DIRS:
                return True
        name = parts[-1]
        return any(
            fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(rel_path, pattern)
            for pattern in self._patterns
        )
