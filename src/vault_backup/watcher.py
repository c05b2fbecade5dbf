"""Vault file watcher built on watchfiles.

Change events are translated to vault-relative, forward-slash paths and handed to a
callback (normally `ChangeDebouncer.queue_file_change`). Changes inside the `.git`
directory are never reported.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from .constants import APP_NAME

if TYPE_CHECKING:
    from watchfiles import Change

logger = logging.getLogger(APP_NAME)


def relative_vault_path(vault_path: Path, changed_path: str) -> str | None:
    """Converts an absolute event path to a vault-relative POSIX path.

    Args:
        vault_path (Path): The watched vault root.
        changed_path (str): The path reported by the watcher.

    Returns:
        str | None: The relative path, or None for paths outside the vault.
    """
    try:
        return Path(changed_path).relative_to(vault_path).as_posix()
    except ValueError:
        return None


def is_git_internal(rel_path: str) -> bool:
    """Returns True for paths inside the repository's .git directory."""
    return rel_path == ".git" or rel_path.startswith(".git/")


async def watch_vault(
    vault_path: Path,
    on_change: Callable[[str], None],
    stop_event: asyncio.Event | None = None,
) -> None:
    """Watch a vault and report every changed file until cancelled or stopped.

    A rename arrives as a deletion of the old path plus an addition of the new one,
    so both paths are reported.

    Args:
        vault_path: The directory to watch.
        on_change: Called with each changed vault-relative path.
        stop_event: Optional event that ends the watch when set.
    """
    from watchfiles import awatch  # noqa: PLC0415

    root = vault_path.resolve()

    def should_watch(_change: "Change", changed_path: str) -> bool:
        rel_path = relative_vault_path(root, changed_path)
        return rel_path is not None and not is_git_internal(rel_path)

    logger.debug(f"Watching {root} for changes")
    async for changes in awatch(root, watch_filter=should_watch, stop_event=stop_event):
        for _change, changed_path in changes:
            rel_path = relative_vault_path(root, changed_path)
            if rel_path:
                on_change(rel_path)
