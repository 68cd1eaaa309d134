"""GitRepository — async access to a git work tree via the git CLI."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from stacktrace.errors import GitCommandError, TransientCaptureError

# ASCII unit/record separators keep commit subjects with arbitrary text parseable.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"%H{_FIELD_SEP}%an{_FIELD_SEP}%aI{_FIELD_SEP}%s{_RECORD_SEP}"


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """A commit as returned by ``git log``."""

    hash: str
    message: str
    author: str = ""
    date: str = ""


@dataclass(frozen=True, slots=True)
class WorkingTreeStatus:
    """Categorized paths from ``git status``."""

    staged: tuple[str, ...] = ()
    modified: tuple[str, ...] = ()
    untracked: tuple[str, ...] = ()
    deleted: tuple[str, ...] = ()

    @property
    def is_dirty(self) -> bool:
        return bool(self.staged or self.modified or self.untracked or self.deleted)

    def as_dict(self) -> dict[str, list[str]]:
        return {
            "staged": list(self.staged),
            "modified": list(self.modified),
            "untracked": list(self.untracked),
            "deleted": list(self.deleted),
        }


def parse_log(output: str) -> list[CommitInfo]:
    """Parse ``git log`` output produced with the record-separated format."""
    commits: list[CommitInfo] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        fields = record.split(_FIELD_SEP)
        if len(fields) < 4:
            continue
        commit_hash, author, date, message = fields[0], fields[1], fields[2], fields[3]
        commits.append(CommitInfo(hash=commit_hash, message=message, author=author, date=date))
    return commits


def parse_porcelain(output: str) -> WorkingTreeStatus:
    """Parse ``git status --porcelain=v1 -z`` output."""
    staged: list[str] = []
    modified: list[str] = []
    untracked: list[str] = []
    deleted: list[str] = []

    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        x, y, path = entry[0], entry[1], entry[3:]
        if x in "RC":
            i += 1  # rename/copy source path follows as its own entry
        if x == "?" and y == "?":
            untracked.append(path)
            continue
        if x == "!":
            continue
        if x not in " ?":
            staged.append(path)
        if y == "M":
            modified.append(path)
        if x == "D" or y == "D":
            deleted.append(path)

    return WorkingTreeStatus(
        staged=tuple(staged),
        modified=tuple(modified),
        untracked=tuple(untracked),
        deleted=tuple(deleted),
    )


class GitRepository:
    """Thin async wrapper over the ``git`` executable for one work tree."""

    def __init__(self, path: str | Path, *, executable: str = "git") -> None:
        self.path = Path(path)
        self.executable = executable

    async def _run(self, *args: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.path),
            )
            stdout, stderr = await proc.communicate()
        except OSError as exc:
            raise TransientCaptureError(f"Failed to run git: {exc}") from exc

        if proc.returncode != 0:
            raise GitCommandError(args, proc.returncode, stderr.decode("utf-8", errors="replace"))
        return stdout.decode("utf-8", errors="replace")

    async def is_repository(self) -> bool:
        """Feasibility probe: is ``path`` inside a git work tree?"""
        try:
            output = await self._run("rev-parse", "--is-inside-work-tree")
        except TransientCaptureError:
            return False
        return output.strip() == "true"

    async def current_branch(self) -> str:
        """Current branch name, or ``HEAD`` when detached."""
        name = (await self._run("branch", "--show-current")).strip()
        return name or "HEAD"

    async def recent_commits(self, count: int = 10) -> list[CommitInfo]:
        """Up to *count* commits reachable from HEAD, newest first."""
        try:
            output = await self._run("log", f"--max-count={count}", f"--format={_LOG_FORMAT}")
        except GitCommandError as exc:
            # Unborn branch; older git reports it as a bad default revision.
            if "does not have any commits" in exc.stderr or "bad default revision" in exc.stderr:
                return []
            raise
        return parse_log(output)

    async def commit_files(self, commit_hash: str) -> list[str]:
        """Paths touched by one commit."""
        output = await self._run("show", "--name-only", "--pretty=format:", commit_hash)
        return [line for line in output.splitlines() if line.strip()]

    async def status(self) -> WorkingTreeStatus:
        output = await self._run("status", "--porcelain=v1", "-z")
        return parse_porcelain(output)
