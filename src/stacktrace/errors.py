"""Exception hierarchy for StackTrace."""

from __future__ import annotations


class StackTraceError(Exception):
    """Base class for all StackTrace errors."""


class PathNotFound(StackTraceError):
    """Raised when a project path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Project path does not exist: {path}")
        self.path = path


class SessionConflict(StackTraceError):
    """Raised when a session is started while another one is active."""

    def __init__(self, session_id: int) -> None:
        super().__init__(
            f"Session already active (ID: {session_id}). Stop the current session first."
        )
        self.session_id = session_id


class StoreError(StackTraceError):
    """Raised on any persistence I/O or constraint failure."""


class MonitorAttachFailure(StackTraceError):
    """A monitor could not attach to its target. Never fatal to a session."""


class TransientCaptureError(StackTraceError):
    """A single unit of capture work failed and was skipped."""


class GitCommandError(TransientCaptureError):
    """A git subprocess exited with a non-zero status."""

    def __init__(self, args: tuple[str, ...], returncode: int, stderr: str) -> None:
        cmd = " ".join(("git", *args))
        super().__init__(f"{cmd} exited with {returncode}: {stderr.strip()}")
        self.returncode = returncode
        self.stderr = stderr
