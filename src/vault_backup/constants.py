import os
from pathlib import Path

"""Global constants and configuration path definitions for Vault Backup.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, timing constants and the default Git ignore rules used across
the application.
"""

# --- Identity ---
APP_NAME = "vault-backup"
"""str: The human-readable application name."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "vault-backup"
"""Path: The directory for runtime state data (logs)."""

# Ensure state directory exists immediately upon module import.
STATE_DIR.mkdir(parents=True, exist_ok=True)

LOG_FILE = STATE_DIR / "daemon.log"
"""Path: The file path for the daemon process logs."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/vault-backup"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

LOCAL_CONFIG_NAME = "vault-backup.toml"
"""str: The per-vault configuration file name, looked up at the vault root."""

PID_FILE_NAME = "vault-backup.pid"
"""str: The daemon PID file name, stored inside the vault's .git directory."""

# --- Git / Logic Constants ---
DEFAULT_IGNORES = [
    ".obsidian/workspace*",
    ".obsidian/cache",
    ".trash/",
    ".DS_Store",
]
"""list[str]: Default patterns written to .gitignore when a vault is initialized."""

GITIGNORE_SECTION_START = "# Obsidian Backup Git - Additional Patterns"
"""str: Marker opening the managed block of user patterns in .gitignore."""

GITIGNORE_SECTION_END = "# End Obsidian Backup Git Patterns"
"""str: Marker closing the managed block of user patterns in .gitignore."""

INITIAL_COMMIT_MESSAGE = "chore: initial commit"
"""str: Message of the first commit created when a vault is initialized."""

# --- Timing ---
DEBOUNCE_SECONDS = 2.0
"""float: Quiet period after the last file change before an edit is recorded."""

IDLE_POLL_SECONDS = 30.0
"""float: How often the daemon checks whether the idle period has elapsed."""

SHUTDOWN_GRACE_SECONDS = 5.0
"""float: How long shutdown waits for an in-flight commit before leaving it."""
