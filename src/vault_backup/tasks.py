import asyncio
import contextlib
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from .constants import APP_NAME

_T = TypeVar("_T")
logger = logging.getLogger(APP_NAME)


class BackgroundTasks:
    """Track detached (fire-and-forget) tasks so their failures are never lost."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(
        self, coro: Coroutine[Any, Any, _T], *, name: str | None = None
    ) -> asyncio.Task[_T]:
        """Create a task, keep a reference to it and log any exception it raises."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)

        def _on_done(done_task: asyncio.Task[Any]) -> None:
            self._tasks.discard(done_task)
            if done_task.cancelled():
                return
            with contextlib.suppress(asyncio.CancelledError):
                exc = done_task.exception()
                if exc is not None:
                    logger.error(
                        f"Background task {done_task.get_name()} failed",
                        exc_info=(type(exc), exc, exc.__traceback__),
                    )

        task.add_done_callback(_on_done)
        return task

    async def wait(self, timeout: float) -> None:
        """Wait up to `timeout` seconds for pending tasks without cancelling them."""
        pending = [task for task in self._tasks if not task.done()]
        if not pending:
            return
        _done, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            logger.warning(
                f"{len(still_pending)} background task(s) still running at shutdown."
            )
