import atexit
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import FrameType

from rich.console import Console

from .config import Config
from .constants import APP_NAME, LOG_FILE, PID_FILE
from .errors import ConfigurationError, GitTideError
from .git_wrapper import CommandRunner
from .puller import Puller
from .scheduler import SyncScheduler

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)

console = Console()
err_console = Console(stderr=True)


def setup_logging(interactive: bool, max_log_size: int = 5 * 1024 * 1024) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to file/stderr
                            with rotation enabled.
        max_log_size (int, optional): Bytes before the log file is rotated.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    # Always log to stderr (captured by systemd/launchd).
    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if not interactive:
        # In daemon mode, rotate logs to file.
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=max_log_size,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def build_pullers(
    config: Config, runner: CommandRunner | None = None
) -> list[Puller]:
    """Creates one puller per configured repository, sharing a single runner."""
    runner = runner or CommandRunner()
    return [Puller(spec, runner=runner, logger=logger) for spec in config.repos]


def find_puller(pullers: list[Puller], path: str | Path) -> Puller | None:
    """Looks up the puller whose local path matches `path`."""
    target = Path(path).expanduser().absolute()
    for puller in pullers:
        if puller.spec.path == target:
            return puller
    return None


def _load_config(config_path: Path | None) -> Config:
    try:
        return Config.load(config_path)
    except ConfigurationError as e:
        err_console.print(f"[bold red]FATAL:[/bold red] {e}")
        sys.exit(1)


def _write_pid_file() -> None:
    try:
        PID_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(PID_FILE, "w") as f:
            f.write(str(os.getpid()))

        # Ensure cleanup on exit.
        atexit.register(lambda: PID_FILE.unlink(missing_ok=True))
    except OSError as e:
        logger.warning(f"Could not write PID file: {e}")


def run_once(config_path: Path | None = None) -> int:
    """Prepares and pulls every configured repository exactly once.

    This is the manual trigger behind `git-tide now`. Each repository is
    handled independently; a failure is reported and the next one proceeds.

    Args:
        config_path (Path | None, optional): An explicit config file.

    Returns:
        int: The number of repositories that failed.
    """
    config = _load_config(config_path)
    setup_logging(interactive=True)

    if not config.repos:
        console.print("[yellow]No repositories configured.[/yellow]")
        return 0

    failures = 0
    for puller in build_pullers(config):
        try:
            puller.prepare()
            changed = puller.pull()
        except GitTideError as e:
            failures += 1
            console.print(f"[bold red]FAILED[/bold red] {puller.name}: {e}")
            continue

        commit = (puller.last_commit or "-")[:12]
        if changed:
            console.print(f"[bold green]UPDATED[/bold green] {puller.name} ({commit})")
        else:
            console.print(f"[dim]UP TO DATE[/dim] {puller.name} ({commit})")

    return failures


def main(config_path: Path | None = None, interactive: bool = False) -> None:
    """The long-running daemon entry point.

    Loads configuration, prepares every repository, performs the eager
    startup pulls and then hands over to the background scheduler until a
    termination signal arrives. Any preparation or startup failure is fatal.

    Args:
        config_path (Path | None, optional): An explicit config file.
        interactive (bool, optional): Whether to log to stdout instead of the
                                      rotating log file. Defaults to False.
    """
    config = _load_config(config_path)
    setup_logging(interactive, config.limits.max_log_size)

    if not config.repos:
        logger.warning("No repositories configured. Nothing to synchronize.")
        return

    pullers = build_pullers(config)
    for puller in pullers:
        try:
            puller.prepare()
        except ConfigurationError as e:
            logger.critical(f"PREPARE FAILED {puller.name}: {e}")
            sys.exit(1)

    scheduler = SyncScheduler(pullers, logger=logger)
    try:
        scheduler.start()
    except GitTideError as e:
        logger.critical(f"STARTUP FAILED: {e}")
        scheduler.stop(timeout=0)
        sys.exit(1)

    if not interactive:
        _write_pid_file()

    def shutdown_handler(signum: int, _frame: FrameType | None) -> None:
        logger.info(f"Received signal {signum}, stopping.")
        scheduler.stop(timeout=0)

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    logger.info(f"RUNNING: {len(pullers)} repositories synchronized.")
    scheduler.wait()


if __name__ == "__main__":
    main()
