import logging
import re
from collections.abc import Iterable
from pathlib import Path

from rich.console import Console

from .backend import VersionControl
from .constants import (
    APP_NAME,
    DEFAULT_IGNORES,
    GITIGNORE_SECTION_END,
    GITIGNORE_SECTION_START,
    INITIAL_COMMIT_MESSAGE,
)
from .git_wrapper import GitRepo

console = Console()
logger = logging.getLogger(APP_NAME)

_SECTION_RE = re.compile(
    rf"{re.escape(GITIGNORE_SECTION_START)}[\s\S]*?{re.escape(GITIGNORE_SECTION_END)}\n?"
)


async def initialize_vault(backend: VersionControl, vault_path: Path) -> bool:
    """Puts a vault under version control if it is not already.

    Writes the default .gitignore, initializes the repository and records an initial
    commit of the whole vault.

    Args:
        backend (VersionControl): The version-control collaborator for the vault.
        vault_path (Path): The vault root.

    Returns:
        bool: True if a repository was created, False if one already existed.

    Raises:
        RepositoryError: If the repository cannot be initialized.
        CommitError: If the initial commit fails.
    """
    if await backend.is_repository():
        return False

    gitignore = vault_path / ".gitignore"
    gitignore.write_text("\n".join(DEFAULT_IGNORES) + "\n")

    await backend.initialize_repository()
    await backend.stage_and_commit("all", INITIAL_COMMIT_MESSAGE)

    logger.info(f"Repository initialized in {vault_path}")
    return True


def render_gitignore_section(existing: str, patterns: Iterable[str]) -> str:
    """Returns .gitignore content with the managed pattern section updated.

    Blank lines and comments are dropped from `patterns`. An empty pattern list
    removes the section; otherwise it is replaced in place, or appended.

    Args:
        existing (str): The current .gitignore content.
        patterns (Iterable[str]): The user's additional patterns.

    Returns:
        str: The new .gitignore content.
    """
    cleaned = [p.strip() for p in patterns]
    cleaned = [p for p in cleaned if p and not p.startswith("#")]
    has_section = GITIGNORE_SECTION_START in existing

    if not cleaned:
        return _SECTION_RE.sub("", existing) if has_section else existing

    section = "\n".join([GITIGNORE_SECTION_START, *cleaned, GITIGNORE_SECTION_END])

    if has_section:
        return _SECTION_RE.sub(lambda _m: section + "\n", existing, count=1)

    separator = "" if not existing or existing.endswith("\n") else "\n"
    return f"{existing}{separator}{section}\n"


def sync_gitignore_patterns(vault_path: Path, patterns: Iterable[str]) -> bool:
    """Writes the user's additional ignore patterns into the vault's .gitignore.

    Args:
        vault_path (Path): The vault root.
        patterns (Iterable[str]): The patterns to keep in the managed section.

    Returns:
        bool: True if .gitignore was modified.
    """
    gitignore = vault_path / ".gitignore"

    existing = ""
    if gitignore.exists():
        existing = gitignore.read_text()
    else:
        logger.debug(".gitignore does not exist, will create")

    updated = render_gitignore_section(existing, patterns)
    if updated == existing:
        return False

    gitignore.write_text(updated)
    logger.info("Updated .gitignore with additional patterns")
    return True


def add_ignore(vault_path: Path, pattern: str) -> None:
    """Adds a file pattern to .gitignore and removes matching files from the index.

    If files matching the pattern are currently tracked, the user is prompted to
    stop tracking them (while keeping the files on disk).

    Args:
        vault_path (Path): The vault root.
        pattern (str): The file pattern to ignore (e.g., '*.canvas').
    """
    gitignore = vault_path / ".gitignore"

    # 1. Append to .gitignore if not present.
    content = ""
    if gitignore.exists():
        content = gitignore.read_text()

    if pattern in content.splitlines():
        console.print(f"[blue]INFO:[/blue] '{pattern}' is already in .gitignore.")
    else:
        with open(gitignore, "a") as f:
            prefix = "\n" if content and not content.endswith("\n") else ""
            f.write(f"{prefix}{pattern}\n")
        console.print(
            f"[bold green]SUCCESS:[/bold green] Added '{pattern}' to .gitignore."
        )

    # 2. Check if currently tracked and offer to remove from index.
    repo = GitRepo(vault_path)
    try:
        tracked = repo._run(["ls-files", "--", pattern])
        if tracked:
            console.print(
                f"[bold yellow]WARNING:[/bold yellow] "
                f"Files matching '{pattern}' are currently tracked by git."
            )
            confirm = console.input(
                "   Stop tracking them (keep local file)? [y/N] "
            ).lower()
            if confirm == "y":
                repo._run(["rm", "-r", "--cached", "--", pattern], capture=False)
                console.print("   Removed from index (file preserved on disk).")
    except Exception as e:
        logger.warning(f"Failed to remove tracked files: {e}")
