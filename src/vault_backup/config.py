import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    LOCAL_CONFIG_NAME,
)
from .messages import DEFAULT_MAX_FILES
from .models import COMMIT_MODES, HIDDEN_FILES_MODES

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds."""
    if isinstance(value, int):
        if value <= 0:
            raise ValueError(f"Time must be positive, got {value}")
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    seconds = int(num * multiplier[unit])
    if seconds <= 0:
        raise ValueError(f"Time must be positive, got '{value}'")
    return seconds


def _parse_choice(value: Any, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ValueError(f"Expected one of {', '.join(choices)}, got '{value}'")
    return str(value)


def _parse_max_files(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Expected a positive integer, got '{value}'")
    return value


@dataclass
class ScheduleConfig:
    """Commit trigger settings.

    Attributes:
        enable_interval_commit (bool): Whether to commit on a fixed interval.
        interval (int): Seconds between interval-triggered commits.
        enable_idle_commit (bool): Whether to commit after a period without edits.
        idle (int): Seconds without edits before an idle commit fires.
        preset (str | None): A schedule preset name (e.g. 'paranoid').
    """

    enable_interval_commit: bool = True
    interval: int = 300
    enable_idle_commit: bool = False
    idle: int = 600
    preset: str | None = None

    def apply_preset(self) -> None:
        """Overwrites the interval and idle periods based on the selected preset."""
        if self.preset == "paranoid":
            self.interval = 60  # 1 min
            self.idle = 120  # 2 mins
        elif self.preset == "balanced":
            self.interval = 300  # 5 mins
            self.idle = 600  # 10 mins
        elif self.preset == "lazy":
            self.interval = 1800  # 30 mins
            self.idle = 3600  # 1 hour


@dataclass
class CommitConfig:
    """Commit strategy settings.

    Attributes:
        max_files (int): Maximum number of file names listed in a batch message.
        mode (str): 'batch' for one commit per attempt, 'individual' for one per file.
        hidden_files (str): How dot-files are handled: 'group', 'separate',
            'never' or 'gitignore-only'.
    """

    max_files: int = DEFAULT_MAX_FILES
    mode: str = "batch"
    hidden_files: str = "group"


@dataclass
class FilesConfig:
    """File management settings.

    Attributes:
        ignore (list[str]): Extra patterns kept in the managed .gitignore section.
        manage_gitignore (bool): Whether the daemon is allowed to modify .gitignore.
    """

    ignore: list[str] = field(default_factory=list)
    manage_gitignore: bool = True


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class LoggingConfig:
    """Diagnostics settings.

    Attributes:
        debug (bool): Whether to log at DEBUG level.
        notify (bool): Whether to raise desktop notifications for notices and errors.
    """

    debug: bool = False
    notify: bool = True


_PARSERS = {
    "interval": parse_time,
    "idle": parse_time,
    "max_log_size": parse_size,
    "max_files": _parse_max_files,
    "mode": lambda v: _parse_choice(v, COMMIT_MODES),
    "hidden_files": lambda v: _parse_choice(v, HIDDEN_FILES_MODES),
}


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        schedule (ScheduleConfig): Commit trigger settings.
        commit (CommitConfig): Commit strategy settings.
        files (FilesConfig): File handling settings.
        limits (LimitsConfig): Resource limits.
        logging (LoggingConfig): Diagnostics settings.
    """

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    commit: CommitConfig = field(default_factory=CommitConfig)
    files: FilesConfig = field(default_factory=FilesConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Cache for the base global configuration
    _global_cache: "Config | None" = None

    @classmethod
    def load(cls, vault_path: Path | None = None) -> "Config":
        """Loads and merges configuration from defaults, global, and vault sources.

        Args:
            vault_path (Path | None): The vault root to search for local config.

        Returns:
            Config: The fully merged configuration object.
        """
        # 1. Load or Retrieve Global Config
        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        # Copy each section so callers never mutate the cached global config.
        cached = cls._global_cache
        instance = cls(
            schedule=replace(cached.schedule),
            commit=replace(cached.commit),
            files=replace(cached.files, ignore=list(cached.files.ignore)),
            limits=replace(cached.limits),
            logging=replace(cached.logging),
        )

        # 2. Load Vault Config (if applicable)
        if vault_path:
            local_toml = vault_path / LOCAL_CONFIG_NAME
            if local_toml.exists():
                instance._merge_from_file(local_toml)

        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if not data:
                return

            # Merge Logic
            if "schedule" in data:
                self.schedule = self._update_dataclass(
                    "schedule", self.schedule, data["schedule"]
                )
                self.schedule.apply_preset()
            if "commit" in data:
                self.commit = self._update_dataclass(
                    "commit", self.commit, data["commit"]
                )
            if "limits" in data:
                self.limits = self._update_dataclass(
                    "limits", self.limits, data["limits"]
                )
            if "logging" in data:
                self.logging = self._update_dataclass(
                    "logging", self.logging, data["logging"]
                )
            if "files" in data:
                # Keep the ignore list out of the dataclass update
                new_ignores = data["files"].pop("ignore", [])
                self.files = self._update_dataclass("files", self.files, data["files"])
                if new_ignores:
                    self.files.ignore.extend(new_ignores)
                    self.files.ignore = list(dict.fromkeys(self.files.ignore))

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                parser = _PARSERS.get(k)
                filtered_updates[k] = parser(v) if parser else v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
