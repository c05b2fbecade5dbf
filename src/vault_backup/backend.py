"""Version-control collaborator used by the commit orchestrator.

`VersionControl` is the seam between the commit engine and Git: the orchestrator
only ever talks to this protocol, so tests can substitute a fake with controllable
latency and failures. `GitBackend` is the production implementation; it runs the
blocking `git` subprocesses in a worker thread so the event loop stays responsive.
"""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Literal, Protocol, runtime_checkable

from .constants import APP_NAME
from .errors import CommitError, GitError, RepositoryError, ToolUnavailableError
from .git_wrapper import GitRepo
from .models import CommitInfo, FileDiffStat

logger = logging.getLogger(APP_NAME)

PathSelection = Sequence[str] | Literal["all"]


@runtime_checkable
class VersionControl(Protocol):
    """Operations the commit engine needs from a version-control system."""

    async def tool_available(self) -> bool:
        """Returns True if the backing tool can be executed."""
        ...

    async def is_repository(self) -> bool:
        """Returns True if the vault is already under version control."""
        ...

    async def initialize_repository(self) -> None:
        """Creates an empty repository.

        Raises:
            RepositoryError: If initialization fails.
        """
        ...

    async def diff_stats(self) -> list[FileDiffStat]:
        """Lists every changed path since the last commit.

        Untracked and binary files are included with zero line counts.

        Raises:
            RepositoryError: If the status or diff query fails.
        """
        ...

    async def filter_ignored(self, stats: list[FileDiffStat]) -> list[FileDiffStat]:
        """Drops stats whose paths are excluded by the ignore rules.

        Raises:
            RepositoryError: If the ignore rules cannot be evaluated.
        """
        ...

    async def stage_and_commit(self, paths: PathSelection, message: str) -> None:
        """Stages the given paths (or everything for "all") and commits them.

        Raises:
            CommitError: If staging or committing fails.
        """
        ...

    async def last_commit(self) -> CommitInfo | None:
        """Returns the latest commit, or None for an empty repository."""
        ...


def _parse_count(value: str) -> int:
    # Binary files are reported as '-'.
    return 0 if value == "-" else int(value)


class GitBackend:
    """`VersionControl` implementation backed by the git command line.

    Attributes:
        path (Path): The vault root.
        repo (GitRepo): The wrapped repository.
    """

    def __init__(self, path: Path):
        self.path = path
        self.repo = GitRepo(path)

    async def tool_available(self) -> bool:
        try:
            version = await asyncio.to_thread(self.repo.version)
        except (ToolUnavailableError, GitError) as e:
            logger.debug(f"git --version failed: {e}")
            return False
        logger.debug(f"Using {version}")
        return True

    async def is_repository(self) -> bool:
        return await asyncio.to_thread(self.repo.is_repository)

    async def initialize_repository(self) -> None:
        try:
            await asyncio.to_thread(self.repo.init)
        except GitError as e:
            raise RepositoryError(f"Failed to initialize repository: {e}") from e
        logger.info(f"Initialized git repository in {self.path}")

    async def diff_stats(self) -> list[FileDiffStat]:
        try:
            return await asyncio.to_thread(self._collect_diff_stats)
        except GitError as e:
            raise RepositoryError(str(e)) from e

    def _collect_diff_stats(self) -> list[FileDiffStat]:
        """Builds stats from `git diff --numstat HEAD` plus untracked files."""
        if not self.repo.has_commits():
            # Nothing to diff against yet: every known file is new.
            paths = self.repo.get_cached_files() + self.repo.get_untracked_files()
            return [FileDiffStat.from_counts(p, 0, 0) for p in dict.fromkeys(paths)]

        stats = [
            FileDiffStat.from_counts(path, _parse_count(added), _parse_count(deleted))
            for added, deleted, path in self.repo.diff_numstat("HEAD")
        ]
        stats.extend(
            FileDiffStat.from_counts(path, 0, 0)
            for path in self.repo.get_untracked_files()
        )
        return stats

    async def filter_ignored(self, stats: list[FileDiffStat]) -> list[FileDiffStat]:
        try:
            ignored = await asyncio.to_thread(
                self.repo.check_ignore, [s.path for s in stats]
            )
        except GitError as e:
            raise RepositoryError(f"Failed to evaluate ignore rules: {e}") from e
        if ignored:
            logger.debug(f"Ignored by .gitignore: {', '.join(sorted(ignored))}")
        return [s for s in stats if s.path not in ignored]

    async def stage_and_commit(self, paths: PathSelection, message: str) -> None:
        await asyncio.to_thread(self._stage_and_commit, paths, message)

    def _stage_and_commit(self, paths: PathSelection, message: str) -> None:
        selected = None if paths == "all" else list(paths)
        try:
            self.repo.add(selected)
            self.repo.commit(message, paths=selected)
        except GitError as e:
            raise CommitError(e.stderr or str(e)) from e
        logger.info(f"COMMITTED {self.path.name}: {message}")

    async def last_commit(self) -> CommitInfo | None:
        try:
            return await asyncio.to_thread(self.repo.last_commit)
        except GitError as e:
            raise RepositoryError(str(e)) from e
