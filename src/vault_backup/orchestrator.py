import logging
import time
from collections.abc import Callable
from dataclasses import replace

from .backend import PathSelection, VersionControl
from .categorize import categorize_files, is_hidden_path
from .config import Config
from .constants import APP_NAME
from .messages import (
    build_commit_message,
    build_hidden_files_commit_message,
    build_single_file_commit_message,
)
from .models import FileDiffStat, GitStatus, Trigger
from .observers import CommitObserver, NullObserver

logger = logging.getLogger(APP_NAME)


def describe_failure(error: BaseException) -> str:
    """Maps a commit failure to the notice shown to the user.

    Args:
        error (BaseException): The error raised during a commit attempt.

    Returns:
        str: A user-facing notice with guidance for well-known failures.
    """
    message = str(error)
    lowered = message.lower()
    if "not a git repository" in lowered:
        return "Git repository not initialized. Run 'vault-backup init'."
    if "permission denied" in lowered:
        return "Permission denied. Check file permissions."
    return f"Commit failed: {message}"


class CommitOrchestrator:
    """Decides what to commit and drives the version-control backend.

    At most one commit attempt runs at a time. An attempt that arrives while another
    one is in flight is rejected, never queued.

    Attributes:
        backend (VersionControl): The version-control collaborator.
        config (Config): The active configuration.
        observer (CommitObserver): Receives status snapshots, errors and notices.
        commit_in_progress (bool): True while an attempt holds the guard.
        last_edit_time (float): Epoch seconds of the last settled edit burst.
    """

    def __init__(
        self,
        backend: VersionControl,
        config: Config,
        observer: CommitObserver | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.config = config
        self.observer: CommitObserver = observer or NullObserver()
        self._clock = clock
        self.commit_in_progress = False
        self.last_edit_time = clock()
        self._status = GitStatus()
        self._last_message: str | None = None

    @property
    def status(self) -> GitStatus:
        """The current status snapshot."""
        return self._status

    def record_edit(self, timestamp: float | None = None) -> None:
        """Marks the moment of the most recent edit (fed by the debouncer)."""
        self.last_edit_time = self._clock() if timestamp is None else timestamp

    def idle_elapsed(self, idle_seconds: float, now: float | None = None) -> bool:
        """Returns True if no edit has been recorded for at least `idle_seconds`."""
        current = self._clock() if now is None else now
        return current - self.last_edit_time >= idle_seconds

    async def perform_commit(self, trigger: Trigger) -> int:
        """Runs one commit attempt.

        Steps:
        1. Rejects the attempt if another one is in flight.
        2. Reads a single diff snapshot and filters it per `hidden_files`.
        3. Routes the files to batch or individual commits.
        4. Publishes the resulting status; failures never propagate.

        Args:
            trigger (Trigger): 'manual', 'interval' or 'idle'. Only manual attempts
                               produce informational notices.

        Returns:
            int: The number of commits created.
        """
        if self.commit_in_progress:
            if trigger == "manual":
                self._notice("Commit already in progress")
            logger.debug(f"Commit ({trigger}) skipped: another commit is in flight.")
            return 0

        self.commit_in_progress = True
        try:
            snapshot = await self.backend.diff_stats()
            stats = await self._filter_files(snapshot)

            if not stats:
                if trigger == "manual":
                    self._notice("No changes to commit")
                logger.debug(f"Commit ({trigger}): nothing to commit.")
                return 0

            if self.config.commit.mode == "individual":
                return await self._commit_individually(stats, trigger)
            return await self._commit_batch(
                stats, trigger, narrowed=len(stats) != len(snapshot)
            )

        except Exception as e:
            logger.error(f"COMMIT ERROR ({trigger}): {e}")
            self._set_status(state="error")
            self._publish_error(e)
            self._notice(describe_failure(e))
            return 0
        finally:
            self.commit_in_progress = False

    async def _filter_files(self, stats: list[FileDiffStat]) -> list[FileDiffStat]:
        """Applies the hidden-file policy that removes files before grouping."""
        handling = self.config.commit.hidden_files
        if handling == "gitignore-only":
            return await self.backend.filter_ignored(stats)
        if handling == "never":
            return [s for s in stats if not is_hidden_path(s.path)]
        return stats

    async def _commit_batch(
        self, stats: list[FileDiffStat], trigger: Trigger, narrowed: bool = False
    ) -> int:
        max_files = self.config.commit.max_files

        if self.config.commit.hidden_files == "separate":
            group = categorize_files(stats)
            commits: list[tuple[list[FileDiffStat], str]] = []
            if group.regular:
                commits.append(
                    (group.regular, build_commit_message(group.regular, max_files))
                )
            if group.hidden:
                commits.append(
                    (group.hidden, build_hidden_files_commit_message(group.hidden))
                )

            for files, message in commits:
                await self._stage_and_commit([f.path for f in files], message)

            created = len(commits)
            summary = f"Committed {len(stats)} file(s) in {created} commit(s)"
        else:
            message = build_commit_message(stats, max_files)
            # A narrowed snapshot stages only the surviving paths.
            paths: PathSelection = [f.path for f in stats] if narrowed else "all"
            await self._stage_and_commit(paths, message)
            created = 1
            summary = f"Committed {len(stats)} file(s)"

        self._commit_succeeded()
        if trigger == "manual":
            self._notice(summary)
        logger.info(f"Batch commit ({trigger}) completed: {created} commit(s).")
        return created

    async def _commit_individually(
        self, stats: list[FileDiffStat], trigger: Trigger
    ) -> int:
        created = 0

        if self.config.commit.hidden_files == "separate":
            group = categorize_files(stats)
            regular, hidden = group.regular, group.hidden
        else:
            regular, hidden = stats, []

        for stat in sorted(regular, key=lambda s: s.path):
            await self._stage_and_commit(
                [stat.path], build_single_file_commit_message(stat)
            )
            created += 1

        if hidden:
            await self._stage_and_commit(
                [f.path for f in hidden], build_hidden_files_commit_message(hidden)
            )
            created += 1

        self._commit_succeeded()
        if trigger == "manual":
            self._notice(f"Created {created} commit(s) for {len(stats)} file(s)")
        logger.info(f"Individual commits ({trigger}): {created} commit(s).")
        return created

    async def _stage_and_commit(self, paths: PathSelection, message: str) -> None:
        if self._status.state != "committing":
            self._set_status(state="committing")
        await self.backend.stage_and_commit(paths, message)
        self._last_message = message

    def _commit_succeeded(self) -> None:
        self._set_status(
            state="idle",
            last_commit_time=self._clock(),
            last_commit_message=self._last_message,
        )

    def _set_status(self, **updates: object) -> None:
        self._status = replace(self._status, **updates)
        try:
            self.observer.on_status_change(self._status)
        except Exception:
            logger.exception("Status observer failed")

    def _publish_error(self, error: Exception) -> None:
        try:
            self.observer.on_error(error)
        except Exception:
            logger.exception("Error observer failed")

    def _notice(self, message: str) -> None:
        try:
            self.observer.notice(message)
        except Exception:
            logger.exception("Notice observer failed")
