"""Notification sinks for commit status changes, errors and user notices.

The orchestrator never references a concrete UI; it publishes to a `CommitObserver`.
Observers are fire-and-forget: anything they raise is logged by the orchestrator and
never reaches the commit logic.
"""

import logging
from typing import Protocol

from .constants import APP_NAME
from .models import GitStatus, status_line
from .system import SystemStrategy, get_system

logger = logging.getLogger(APP_NAME)


class CommitObserver(Protocol):
    """Receives read-only updates from the commit orchestrator."""

    def on_status_change(self, status: GitStatus) -> None: ...

    def on_error(self, error: Exception) -> None: ...

    def notice(self, message: str) -> None: ...


class NullObserver:
    """Observer that discards every update."""

    def on_status_change(self, status: GitStatus) -> None:
        pass

    def on_error(self, error: Exception) -> None:
        pass

    def notice(self, message: str) -> None:
        pass


class LoggingObserver:
    """Observer used by the daemon: logs everything, optionally notifies the desktop.

    Attributes:
        notify (bool): Whether notices and errors are also sent as desktop
            notifications.
        system (SystemStrategy): The platform notification strategy.
    """

    def __init__(self, notify: bool = True, system: SystemStrategy | None = None):
        self.notify = notify
        self.system = system or get_system()

    def on_status_change(self, status: GitStatus) -> None:
        logger.debug(status_line(status))

    def on_error(self, error: Exception) -> None:
        logger.debug(f"Git error: {error!r}")
        if self.notify:
            self.system.notify(f"{APP_NAME} error", str(error))

    def notice(self, message: str) -> None:
        logger.info(f"NOTICE: {message}")
        if self.notify:
            self.system.notify(APP_NAME, message)
