import logging
from pathlib import Path

from .constants import APP_NAME
from .errors import ConfigurationError, ExecutionError
from .git_wrapper import GitRepo, redact_url

logger = logging.getLogger(APP_NAME)


def same_origin(a: str, b: str) -> bool:
    """Compares two remote locations, ignoring a trailing '.git' suffix."""
    return a.removesuffix(".git") == b.removesuffix(".git")


def prepare_path(url: str, repo: GitRepo) -> bool:
    """Validates (and if needed creates) a repository's local path.

    A missing path or an empty directory is created (with parents) and is
    ready for a first clone. A non-empty path is only accepted if it is a
    working copy of `url`. Existing content is never modified.

    Args:
        url (str): The configured remote location.
        repo (GitRepo): The repository bound to the local path.

    Returns:
        bool: True if the path already holds a working copy of `url`
              (the first sync should pull, not clone), False otherwise.

    Raises:
        ConfigurationError: If the path is a file, a working copy of another
                            origin, or a non-empty non-repository directory.
    """
    path: Path = repo.path

    if path.exists() and not path.is_dir():
        raise ConfigurationError(f"cannot git clone into {path}, not a directory")

    if not path.exists() or not any(path.iterdir()):
        try:
            path.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"cannot create {path}: {e}") from e
        return False

    if not (path / ".git").is_dir():
        raise ConfigurationError(f"cannot git clone into {path}, directory not empty")

    try:
        origin = repo.origin_url()
    except ExecutionError as e:
        raise ConfigurationError(f"cannot retrieve repo url for {path}: {e}") from e

    if not same_origin(origin, url):
        raise ConfigurationError(f"another git repo '{origin}' exists at {path}")

    logger.info(f"ADOPTED {path}: existing working copy of {redact_url(url)}")
    return True

