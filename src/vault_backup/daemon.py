import asyncio
import contextlib
import logging
import os
import signal
import sys
import time
from collections.abc import Callable
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .backend import GitBackend, VersionControl
from .config import Config
from .constants import (
    APP_NAME,
    IDLE_POLL_SECONDS,
    LOG_FILE,
    SHUTDOWN_GRACE_SECONDS,
)
from .debounce import ChangeDebouncer
from .models import Trigger
from .observers import CommitObserver, LoggingObserver
from .ops import initialize_vault, sync_gitignore_patterns
from .orchestrator import CommitOrchestrator
from .system import get_pid_file
from .tasks import BackgroundTasks
from .watcher import watch_vault

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


class VaultDaemon:
    """Owns every timer, the watcher and the commit orchestrator for one vault.

    The interval timer and the idle poll run as independent asyncio tasks. Commit
    attempts they start are detached, so a slow commit never delays the next tick;
    the orchestrator's guard rejects overlapping attempts.

    Attributes:
        vault_path (Path): The vault root.
        config (Config): The active configuration.
        backend (VersionControl): The version-control collaborator.
        orchestrator (CommitOrchestrator): The commit engine.
        debouncer (ChangeDebouncer): Turns change bursts into edit timestamps.
    """

    def __init__(
        self,
        vault_path: Path,
        config: Config,
        backend: VersionControl | None = None,
        observer: CommitObserver | None = None,
        clock: Callable[[], float] = time.time,
        idle_poll: float = IDLE_POLL_SECONDS,
    ):
        self.vault_path = vault_path
        self.config = config
        self.backend: VersionControl = backend or GitBackend(vault_path)
        self.orchestrator = CommitOrchestrator(
            self.backend,
            config,
            observer or LoggingObserver(notify=config.logging.notify),
            clock=clock,
        )
        self.debouncer = ChangeDebouncer(self.orchestrator.record_edit, clock=clock)
        self.idle_poll = idle_poll
        self.tasks = BackgroundTasks()
        self._interval_task: asyncio.Task[None] | None = None
        self._idle_task: asyncio.Task[None] | None = None
        self._watch_task: asyncio.Task[None] | None = None
        self._stop_requested = asyncio.Event()

    @property
    def timers_running(self) -> bool:
        """Whether the interval or idle timer is active."""
        return any(
            task is not None and not task.done()
            for task in (self._interval_task, self._idle_task)
        )

    async def prepare(self) -> bool:
        """Checks the git installation and initializes the vault repository.

        Returns:
            bool: False if git is unavailable and the daemon must not start.
        """
        if not await self.backend.tool_available():
            logger.error(
                "Git is not installed. Please install git to use Vault Backup."
            )
            self.orchestrator.observer.notice(
                "Git is not installed. Please install git to use Vault Backup."
            )
            return False

        try:
            if await initialize_vault(self.backend, self.vault_path):
                self.orchestrator.observer.notice("Git repository initialized")
        except Exception as e:
            logger.error(f"Failed to initialize repository: {e}")
            self.orchestrator.observer.notice(f"Failed to initialize git: {e}")

        self.sync_gitignore()
        return True

    def sync_gitignore(self) -> None:
        """Writes the configured extra ignore patterns to the managed section."""
        if not self.config.files.manage_gitignore:
            return
        try:
            sync_gitignore_patterns(self.vault_path, self.config.files.ignore)
        except OSError as e:
            logger.error(f"Failed to update .gitignore: {e}")
            self.orchestrator.observer.notice(f"Failed to update .gitignore: {e}")

    def trigger(self, trigger: Trigger) -> asyncio.Task[int]:
        """Starts a detached commit attempt."""
        return self.tasks.spawn(
            self.orchestrator.perform_commit(trigger), name=f"commit-{trigger}"
        )

    def queue_file_change(self, path: str) -> None:
        """Entry point for watcher events."""
        self.debouncer.queue_file_change(path)

    def check_idle(self) -> bool:
        """Starts an idle commit if the vault has been quiet long enough.

        Returns:
            bool: True if a commit attempt was started.
        """
        if self.orchestrator.commit_in_progress:
            return False
        if not self.orchestrator.idle_elapsed(self.config.schedule.idle):
            return False
        logger.debug("Idle timeout reached, triggering commit")
        self.trigger("idle")
        return True

    async def _interval_loop(self, seconds: float) -> None:
        while True:
            await asyncio.sleep(seconds)
            self.trigger("interval")

    async def _idle_loop(self) -> None:
        while True:
            await asyncio.sleep(self.idle_poll)
            self.check_idle()

    def start_timers(self) -> None:
        """(Re)starts the interval and idle timers from the current configuration."""
        self.stop_timers()
        schedule = self.config.schedule

        if schedule.enable_interval_commit:
            self._interval_task = asyncio.create_task(
                self._interval_loop(schedule.interval), name="interval-timer"
            )
            logger.debug(f"Interval timer started: {schedule.interval}s")

        if schedule.enable_idle_commit:
            self._idle_task = asyncio.create_task(self._idle_loop(), name="idle-timer")
            logger.debug(f"Idle timer started: {schedule.idle}s")

    def stop_timers(self) -> None:
        """Cancels the interval and idle timers."""
        for task in (self._interval_task, self._idle_task):
            if task is not None:
                task.cancel()
        self._interval_task = None
        self._idle_task = None

    def start(self, watch: bool = True) -> None:
        """Starts the timers and, optionally, the file watcher."""
        self.start_timers()
        if watch and self._watch_task is None:
            self._watch_task = asyncio.create_task(
                watch_vault(self.vault_path, self.queue_file_change), name="watcher"
            )

    def reload_config(self) -> None:
        """Reloads configuration from disk and restarts the timers."""
        Config._global_cache = None
        self.config = Config.load(self.vault_path)
        self.orchestrator.config = self.config
        _apply_log_level(self.config)
        self.sync_gitignore()
        self.start_timers()
        logger.info("Configuration reloaded.")

    def request_stop(self) -> None:
        """Asks `run` to shut down."""
        self._stop_requested.set()

    async def stop(self) -> None:
        """Cancels the timers, the watcher and the debouncer together.

        A commit already in flight is given a short grace period but never cancelled.
        """
        self.stop_timers()
        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task
            self._watch_task = None
        self.debouncer.cancel()
        await self.tasks.wait(SHUTDOWN_GRACE_SECONDS)

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        handlers = {
            signal.SIGINT: self.request_stop,
            signal.SIGTERM: self.request_stop,
        }
        if hasattr(signal, "SIGUSR1"):
            handlers[signal.SIGUSR1] = lambda: self.trigger("manual")
        if hasattr(signal, "SIGHUP"):
            handlers[signal.SIGHUP] = self.reload_config

        for sig, handler in handlers.items():
            try:
                loop.add_signal_handler(sig, handler)
            except (NotImplementedError, RuntimeError) as e:
                logger.debug(f"Cannot install handler for {sig!r}: {e}")

    async def run(self) -> int:
        """Runs the daemon until a stop is requested.

        Returns:
            int: The process exit code.
        """
        if not await self.prepare():
            return 1

        pid_file = get_pid_file(self.vault_path)
        try:
            pid_file.write_text(str(os.getpid()))
        except OSError as e:
            logger.warning(f"Could not write PID file: {e}")

        self._install_signal_handlers()
        self.start()
        logger.info(f"Watching {self.vault_path}")

        try:
            await self._stop_requested.wait()
        finally:
            await self.stop()
            pid_file.unlink(missing_ok=True)
            logger.info("Stopped.")
        return 0


def _apply_log_level(config: Config) -> None:
    logger.setLevel(logging.DEBUG if config.logging.debug else logging.INFO)


def setup_logging(interactive: bool, config: Config) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to file/stderr
                            with rotation enabled.
        config (Config): Supplies the debug flag and the log size limit.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    _apply_log_level(config)

    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if not interactive:
        # In daemon mode, rotate logs to file.
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=config.limits.max_log_size,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def main(vault_path: Path, interactive: bool = True) -> int:
    """Runs the backup daemon for a vault in the foreground.

    Args:
        vault_path (Path): The vault root.
        interactive (bool, optional): Log to stdout only (True) or to stderr and the
                                      rotating log file (False). Defaults to True.

    Returns:
        int: The process exit code.
    """
    vault_path = vault_path.resolve()
    config = Config.load(vault_path)
    setup_logging(interactive, config)

    daemon = VaultDaemon(vault_path, config)
    return asyncio.run(daemon.run())
