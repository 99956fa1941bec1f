import os
from pathlib import Path

"""Global constants and configuration path definitions for Git Tide.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, and the fixed tunables of the synchronization engine.
"""

# --- Identity ---
APP_NAME = "git-tide"
"""str: The human-readable application name."""

APP_LABEL = "com.gittide.daemon"
"""str: The reverse-DNS style application identifier."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-tide"
"""Path: The directory for runtime state data (logs, pid file)."""

LOG_FILE = STATE_DIR / "daemon.log"
"""Path: The file path for the daemon process logs."""

PID_FILE = STATE_DIR / "daemon.pid"
"""Path: The file path storing the daemon's process ID."""

LOCK_DIR = STATE_DIR / "locks"
"""Path: Per-repository lock files shared by the daemon and manual commands."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/git-tide"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Sync Engine ---
GIT_BINARY = "git"
"""str: The version-control executable, resolved through PATH."""

NUM_RETRIES = 3
"""int: Attempts made by a single pull before giving up."""

DEBOUNCE_WINDOW = 5.0
"""float: Seconds after a successful pull during which further pulls are no-ops."""

DEFAULT_INTERVAL = 3600
"""int: Seconds between background pulls when a repository sets no interval."""

DEFAULT_BRANCH = "master"
"""str: The branch tracked when a repository names none."""

LATEST_TAG = "{latest}"
"""str: Branch value in the config file that selects latest-tag tracking."""
