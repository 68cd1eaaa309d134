"""Activity monitors: filesystem and version control."""

from stacktrace.monitors.base import RepeatingTask
from stacktrace.monitors.files import FileMonitor
from stacktrace.monitors.git import CommitInfo, GitRepository, WorkingTreeStatus
from stacktrace.monitors.ignore import PathFilter
from stacktrace.monitors.vcs import GitMonitor, new_commits_since

__all__ = [
    "CommitInfo",
    "FileMonitor",
    "GitMonitor",
    "GitRepository",
    "PathFilter",
    "RepeatingTask",
    "WorkingTreeStatus",
    "new_commits_since",
]
