"""Splits changed files into hidden and regular paths."""

from collections.abc import Iterable

from .models import FileDiffStat, FileGroup


def is_hidden_path(path: str) -> bool:
    """Returns True if any '/'-separated segment of the path starts with a dot.

    Args:
        path (str): A repository-relative path (e.g. '.obsidian/app.json').

    Returns:
        bool: True for dotfiles and anything inside a dot-directory.
    """
    return any(part.startswith(".") for part in path.split("/"))


def categorize_files(files: Iterable[FileDiffStat]) -> FileGroup:
    """Partitions stats into hidden and regular groups, preserving input order.

    Args:
        files (Iterable[FileDiffStat]): The stats to partition.

    Returns:
        FileGroup: The hidden and regular stats.
    """
    group = FileGroup()
    for stat in files:
        if is_hidden_path(stat.path):
            group.hidden.append(stat)
        else:
            group.regular.append(stat)
    return group
