"""Coalesces bursts of file-change events into a single "last edit" timestamp."""

import asyncio
import logging
import time
from collections.abc import Callable

from .constants import APP_NAME, DEBOUNCE_SECONDS

logger = logging.getLogger(APP_NAME)


class ChangeDebouncer:
    """Records an edit only once file changes have been quiet for `delay` seconds.

    Every queued change cancels the pending action and schedules a new one, so only
    the last change of a burst fires. Each schedule carries a generation number and a
    callback whose generation is no longer current is ignored, which guards against a
    stale fire racing a reschedule.

    The pending path set is informational only: commit content is always read fresh
    from Git at commit time.

    Attributes:
        delay (float): The quiet period in seconds.
    """

    def __init__(
        self,
        on_settle: Callable[[float], None],
        delay: float = DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.delay = delay
        self._on_settle = on_settle
        self._clock = clock
        self._pending: set[str] = set()
        self._handle: asyncio.TimerHandle | None = None
        self._generation = 0

    @property
    def pending(self) -> frozenset[str]:
        """Paths changed since the last settled burst."""
        return frozenset(self._pending)

    @property
    def scheduled(self) -> bool:
        """Whether a settle action is currently waiting to fire."""
        return self._handle is not None

    def queue_file_change(self, path: str) -> None:
        """Registers a changed path and restarts the quiet period.

        Must be called from within a running event loop.
        """
        self._pending.add(path)

        if self._handle is not None:
            self._handle.cancel()

        self._generation += 1
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._settle, self._generation)

    def _settle(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None
        count = len(self._pending)
        self._pending.clear()
        try:
            self._on_settle(self._clock())
        except Exception:
            logger.exception("Failed to record edit time")
        else:
            logger.debug(f"Edit settled after {count} change(s)")

    def cancel(self) -> None:
        """Drops the scheduled action and any pending paths."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1
        self._pending.clear()
