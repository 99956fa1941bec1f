"""Cross-process locking of repository working copies.

The daemon and one-off commands (`git-tide now`, `git-tide checkout`) run in
separate processes, so a `threading.Lock` alone cannot keep them from running
git in the same directory at once. An advisory `flock` on a per-repository
lock file under the state directory serializes them.
"""

import fcntl
import hashlib
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from . import constants
from .errors import ExecutionError


def lock_file_for(path: Path) -> Path:
    """Maps a working copy path to its lock file.

    The lock lives outside the working copy, so a fresh clone target stays empty.

    Args:
        path (Path): The repository's local directory.

    Returns:
        Path: The lock file path under `LOCK_DIR`.
    """
    digest = hashlib.sha256(str(path).encode("utf-8")).hexdigest()[:16]
    return constants.LOCK_DIR / f"{path.name or 'root'}-{digest}.lock"


@contextmanager
def repository_lock(path: Path) -> Iterator[None]:
    """Holds an exclusive lock on a working copy for the duration of the block.

    Blocks until every other holder, in this or another process, releases it.

    Args:
        path (Path): The repository's local directory.

    Raises:
        ExecutionError: If the lock file cannot be created or locked.
    """
    lock_path = lock_file_for(path)
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_fd = os.open(lock_path, os.O_CREAT | os.O_RDWR, 0o644)
    except OSError as e:
        raise ExecutionError(f"Could not open lock file {lock_path}: {e}") from e

    try:
        try:
            fcntl.flock(lock_fd, fcntl.LOCK_EX)
        except OSError as e:
            raise ExecutionError(f"Could not lock {lock_path}: {e}") from e
        yield
    finally:
        # Closing the descriptor releases the lock.
        os.close(lock_fd)
