"""Vault Backup: Automated local version-control snapshots for Obsidian vaults.

This package provides the command-line interface, the background daemon, and the
commit engine that decides when to commit, what to include, and how to describe
each change in a conventional-commit style message.
"""

from . import (
    backend,
    categorize,
    cli,
    config,
    constants,
    daemon,
    debounce,
    errors,
    git_wrapper,
    messages,
    models,
    observers,
    ops,
    orchestrator,
    system,
    tasks,
    watcher,
)

__all__ = [
    "backend",
    "categorize",
    "cli",
    "config",
    "constants",
    "daemon",
    "debounce",
    "errors",
    "git_wrapper",
    "messages",
    "models",
    "observers",
    "ops",
    "orchestrator",
    "system",
    "tasks",
    "watcher",
]
