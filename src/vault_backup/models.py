"""Value objects shared by the commit engine, the Git backend and the CLI."""

import time
from dataclasses import dataclass, field
from typing import Literal

Trigger = Literal["manual", "interval", "idle"]
"""The reason a commit attempt was started."""

CommitMode = Literal["batch", "individual"]
HiddenFilesHandling = Literal["group", "separate", "never", "gitignore-only"]
CommitState = Literal["idle", "committing", "error"]

COMMIT_MODES: tuple[str, ...] = ("batch", "individual")
HIDDEN_FILES_MODES: tuple[str, ...] = ("group", "separate", "never", "gitignore-only")


@dataclass(frozen=True)
class FileDiffStat:
    """Line-level change summary for one path between HEAD and the working tree.

    Attributes:
        path (str): Repository-relative, forward-slash separated path.
        additions (int): Number of added lines (0 for binary or untracked files).
        deletions (int): Number of deleted lines (0 for binary or untracked files).
        net_change (int): Always ``additions - deletions``.
    """

    path: str
    additions: int
    deletions: int
    net_change: int

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("FileDiffStat path must not be empty")
        if self.additions < 0 or self.deletions < 0:
            raise ValueError(
                f"Negative line counts for {self.path}: "
                f"+{self.additions}/-{self.deletions}"
            )
        if self.net_change != self.additions - self.deletions:
            raise ValueError(
                f"net_change for {self.path} must equal additions - deletions"
            )

    @classmethod
    def from_counts(cls, path: str, additions: int, deletions: int) -> "FileDiffStat":
        """Builds a stat, deriving the net change from the line counts."""
        return cls(path, additions, deletions, additions - deletions)


@dataclass
class FileGroup:
    """Partition of a stat list into hidden and regular paths, in input order."""

    hidden: list[FileDiffStat] = field(default_factory=list)
    regular: list[FileDiffStat] = field(default_factory=list)


@dataclass(frozen=True)
class GitStatus:
    """Snapshot of the orchestrator state handed to observers.

    Attributes:
        state (CommitState): One of 'idle', 'committing' or 'error'.
        last_commit_time (float | None): Epoch seconds of the last successful commit.
        last_commit_message (str | None): Message of the last successful commit.
    """

    state: CommitState = "idle"
    last_commit_time: float | None = None
    last_commit_message: str | None = None


@dataclass(frozen=True)
class CommitInfo:
    """Metadata of a single commit as reported by `git log`."""

    hash: str
    message: str
    date: str
    author: str


def format_time_ago(timestamp: float, now: float | None = None) -> str:
    """Renders the age of a timestamp as a compact string (e.g. '5m ago')."""
    current = time.time() if now is None else now
    seconds = max(0, int(current - timestamp))

    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def status_line(status: GitStatus, now: float | None = None) -> str:
    """Returns the one-line, human-readable summary of a status snapshot."""
    if status.state == "committing":
        return "Git: Committing..."
    if status.state == "error":
        return "Git: Error"
    if status.last_commit_time:
        return f"Git: Last commit {format_time_ago(status.last_commit_time, now)}"
    return "Git: Ready"
