"""Git Tide: keep local directories synchronized with remote git repositories.

This package provides the synchronization engine (preparation, the pull state
machine and the background scheduler), along with the daemon, command-line
interface and service installation around it.
"""

from . import (
    cli,
    config,
    constants,
    daemon,
    errors,
    git_wrapper,
    locking,
    prepare,
    puller,
    repository,
    scheduler,
    service,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "daemon",
    "errors",
    "git_wrapper",
    "locking",
    "prepare",
    "puller",
    "repository",
    "scheduler",
    "service",
]
