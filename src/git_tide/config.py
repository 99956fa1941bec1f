import logging
import os
import re
import shlex
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_BRANCH,
    DEFAULT_INTERVAL,
    LATEST_TAG,
)
from .errors import ConfigurationError
from .repository import RepositorySpec, TrackBranch, TrackLatestTag, Tracking

logger = logging.getLogger(APP_NAME)

REPO_KEYS = {"url", "path", "branch", "interval", "clone_args", "pull_args"}


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
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


def parse_tracking(branch: str | None) -> Tracking:
    """Maps a configured branch value to its tracking mode.

    The special value '{latest}' selects latest-tag tracking; anything else
    names a branch. An empty value falls back to the default branch.
    """
    if branch == LATEST_TAG:
        return TrackLatestTag()
    return TrackBranch(branch or DEFAULT_BRANCH)


def parse_args(value: list[str] | str | None) -> tuple[str, ...]:
    """Accepts extra git arguments as a TOML array or a shell-style string."""
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(shlex.split(value))
    if not isinstance(value, list):
        raise ValueError(f"Invalid argument list {value!r}")
    return tuple(str(v) for v in value)


@dataclass
class CoreConfig:
    """Core application settings.

    Attributes:
        root (str | None): Base directory that relative repository paths are
                           joined onto. Defaults to the working directory.
    """

    root: str | None = None


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Core settings.
        limits (LimitsConfig): Resource limits.
        repos (list[RepositorySpec]): The repositories to keep synchronized.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    repos: list[RepositorySpec] = field(default_factory=list)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from a TOML file, applying defaults where necessary.

        Args:
            path (Path | None): An explicit config file. When omitted, the global
                                config file is used if it exists.

        Returns:
            Config: The populated configuration object.

        Raises:
            ConfigurationError: If an explicit file is missing, the file cannot be
                                parsed, or a repository entry is invalid.
        """
        instance = cls()
        if path is None:
            path = CONFIG_FILE
            if not path.exists():
                return instance
        elif not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Config syntax error in {path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Could not read {path}: {e}") from e

        instance._merge(data)
        return instance

    def _merge(self, data: dict[str, Any]) -> None:
        """Merges parsed TOML data into the current instance.

        Raises:
            ConfigurationError: If a section or repository entry has the wrong shape.
        """
        for section in ("core", "limits"):
            if section in data and not isinstance(data[section], dict):
                raise ConfigurationError(f"[{section}] must be a table")
        if "core" in data:
            self.core = self._update_dataclass("core", self.core, data["core"])
        if "limits" in data:
            self.limits = self._update_dataclass("limits", self.limits, data["limits"])

        if self.core.root is not None and not isinstance(self.core.root, str):
            raise ConfigurationError(
                f"[core].root must be a string, got {self.core.root!r}"
            )

        entries = data.get("repo", [])
        if isinstance(entries, dict):
            entries = [entries]
        if not isinstance(entries, list):
            raise ConfigurationError("[repo] must be an array of tables ([[repo]])")
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ConfigurationError(f"[repo.{i}] must be a table, got {entry!r}")

        root = Path(self.core.root).expanduser() if self.core.root else None
        self.repos = [
            build_repository(i, entry, root) for i, entry in enumerate(entries)
        ]

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(invalid_keys)}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)


def build_repository(
    index: int, entry: dict[str, Any], root: Path | None
) -> RepositorySpec:
    """Builds a validated repository specification from one [[repo]] table.

    Args:
        index (int): Position of the entry, used in error messages.
        entry (dict[str, Any]): The raw table.
        root (Path | None): The configured base directory. Relative paths are
                            joined onto it (or onto the working directory
                            when unset); an entry without a path uses it.

    Returns:
        RepositorySpec: The immutable specification.

    Raises:
        ConfigurationError: If the url is missing, the path is missing and no
                            root is configured, or a value has the wrong type.
    """
    section = f"repo.{index}"

    invalid_keys = set(entry.keys()) - REPO_KEYS
    if invalid_keys:
        logger.warning(
            f"Unknown config keys in [{section}]: {', '.join(sorted(invalid_keys))}. Ignoring."
        )

    url = str(entry.get("url") or "").strip()
    if not url:
        raise ConfigurationError(f"[{section}] no URL set")

    raw_path = str(entry.get("path") or "").strip()
    if raw_path:
        path = Path(raw_path).expanduser()
        path = path if path.is_absolute() else (root or Path.cwd()) / path
    elif root is not None:
        path = root
    else:
        raise ConfigurationError(f"[{section}] no path set")

    interval = DEFAULT_INTERVAL
    if "interval" in entry:
        try:
            seconds = parse_time(entry["interval"])
            if seconds > 0:
                interval = seconds
        except ValueError as e:
            logger.warning(
                f"Config error in [{section}].interval: {e}. Falling back to default."
            )

    branch = entry.get("branch")
    if branch is not None and not isinstance(branch, str):
        raise ConfigurationError(f"[{section}].branch must be a string, got {branch!r}")

    extra_args = {}
    for key in ("clone_args", "pull_args"):
        try:
            extra_args[key] = parse_args(entry.get(key))
        except ValueError as e:
            raise ConfigurationError(f"Config error in [{section}].{key}: {e}") from e

    return RepositorySpec(
        url=url,
        path=Path(_normalize(path)),
        tracking=parse_tracking(branch),
        interval=interval,
        **extra_args,
    )


def _normalize(path: Path) -> str:
    """Collapses '.' and '..' segments without touching the filesystem."""
    return os.path.normpath(str(path.absolute()))


def load_repositories(path: Path | None = None) -> list[RepositorySpec]:
    """Returns the repository specifications from a config file.

    Raises:
        ConfigurationError: See `Config.load`.
    """
    return Config.load(path).repos
