"""Conventional-commit style message builders.

All functions here are pure: the output depends only on the given stats, never on
their order, and nothing is raised for any finite input.
"""

from collections.abc import Sequence

from .models import FileDiffStat

DEFAULT_MAX_FILES = 5


def has_net_deletions(stat: FileDiffStat) -> bool:
    """Returns True if the file lost more lines than it gained."""
    return stat.net_change < 0


def format_file_name(stat: FileDiffStat) -> str:
    """Formats a path for a message, tagging net-negative files with [DELETES]."""
    return f"{stat.path} [DELETES]" if has_net_deletions(stat) else stat.path


def _sorted_names(files: Sequence[FileDiffStat]) -> list[str]:
    # sorted() is stable, so duplicate paths keep their relative order.
    return [format_file_name(stat) for stat in sorted(files, key=lambda s: s.path)]


def build_commit_message(
    files: Sequence[FileDiffStat], max_files: int = DEFAULT_MAX_FILES
) -> str:
    """Builds the message for a commit covering several files.

    Files are listed alphabetically. When more than `max_files` are given, only the
    first `max_files` names are listed, followed by "and N more".

    Args:
        files (Sequence[FileDiffStat]): The changed files.
        max_files (int, optional): Maximum number of names to list. Defaults to 5.

    Returns:
        str: A message such as 'chore: update a.md, b.md and 3 more'.
    """
    if not files:
        return "chore: update files"

    names = _sorted_names(files)
    limit = max(1, max_files)

    if len(names) <= limit:
        file_list = ", ".join(names)
    else:
        remaining = len(names) - limit
        file_list = f"{', '.join(names[:limit])} and {remaining} more"

    return f"chore: update {file_list}"


def build_single_file_commit_message(stat: FileDiffStat) -> str:
    """Builds the message for a commit that touches exactly one file."""
    return f"chore: update {format_file_name(stat)}"


def build_hidden_files_commit_message(files: Sequence[FileDiffStat]) -> str:
    """Builds the message for the commit grouping all hidden files.

    Unlike `build_commit_message`, the list is never truncated.
    """
    if not files:
        return "chore: update hidden files"

    return f"chore: update hidden files ({', '.join(_sorted_names(files))})"
