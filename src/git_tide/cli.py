import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import daemon, service
from .config import Config
from .constants import APP_NAME, CONFIG_FILE, LOG_FILE, PID_FILE
from .errors import ConfigurationError, GitTideError
from .git_wrapper import CommandRunner, GitRepo, redact_url
from .prepare import same_origin
from .repository import RepositorySpec

logger = logging.getLogger(APP_NAME)
console = Console()


def _load_config(config_path: Path | None) -> Config:
    try:
        return Config.load(config_path)
    except ConfigurationError as e:
        console.print(f"[bold red]Config Error:[/bold red] {e}")
        sys.exit(1)


def _daemon_pid() -> int | None:
    """Returns the PID of the running daemon, or None if it is not running."""
    if not PID_FILE.exists():
        return None
    try:
        with open(PID_FILE) as f:
            pid = int(f.read().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, OSError):
        return None


def inspect_repository(
    spec: RepositorySpec, runner: CommandRunner | None = None
) -> tuple[str, str, str]:
    """Describes the on-disk state of a repository path without modifying it.

    Args:
        spec (RepositorySpec): The configured repository.
        runner (CommandRunner | None, optional): The executor for git queries.

    Returns:
        tuple[str, str, str]: (status text, rich style, HEAD hash or '-').
    """
    path = spec.path
    if not path.exists():
        return "Missing", "yellow", "-"
    if not path.is_dir():
        return "Not a directory", "bold red", "-"
    if not any(path.iterdir()):
        return "Empty", "yellow", "-"
    if not (path / ".git").is_dir():
        return "Not a repository", "bold red", "-"

    repo = GitRepo(path, runner)
    try:
        origin = repo.origin_url()
        if not same_origin(origin, spec.url):
            return "Foreign origin", "bold red", "-"
        head = repo.head_commit()
    except GitTideError as e:
        logger.debug(f"Failed to inspect {path}: {e}")
        return "Error", "bold red", "-"
    return "Synced", "green", head[:12]


def show_status(config_path: Path | None = None) -> None:
    """Displays the daemon state and every configured repository."""
    pid = _daemon_pid()
    if pid:
        console.print(f"Daemon: [bold green]Running[/bold green] (pid {pid})")
    else:
        console.print("Daemon: [bold red]Stopped[/bold red]")

    if service.is_service_enabled():
        console.print("Service: [green]Enabled[/green]")

    config = _load_config(config_path)
    if not config.repos:
        console.print("[yellow]No repositories configured.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Path", style="cyan")
    table.add_column("Remote", style="dim")
    table.add_column("Mode")
    table.add_column("Interval", justify="right")
    table.add_column("Status")
    table.add_column("HEAD", style="dim")

    runner = CommandRunner()
    for spec in config.repos:
        status_text, status_style, head = inspect_repository(spec, runner)
        display_path = str(spec.path).replace(str(Path.home()), "~")
        table.add_row(
            display_path,
            redact_url(spec.url),
            spec.mode_label,
            f"{spec.interval}s",
            f"[{status_style}]{status_text}[/{status_style}]",
            head,
        )

    console.print(table)


def checkout_commit(path: str, commit: str, config_path: Path | None = None) -> None:
    """Checks out a commit in a configured repository for manual intervention.

    The daemon's next scheduled pull converges the directory again.
    """
    config = _load_config(config_path)
    pullers = daemon.build_pullers(config)
    puller = daemon.find_puller(pullers, path)
    if puller is None:
        console.print(f"[bold red]Not a configured repository:[/bold red] {path}")
        sys.exit(1)

    try:
        puller.prepare()
        if not puller.initialized:
            console.print(
                f"[bold red]Not cloned yet:[/bold red] {puller.name}. "
                "Run 'git-tide now' first."
            )
            sys.exit(1)
        puller.checkout_commit(commit)
    except GitTideError as e:
        console.print(f"[bold red]CHECKOUT FAILED[/bold red] {puller.name}: {e}")
        sys.exit(1)

    console.print(f"[bold green]✔[/bold green] {puller.name} at [cyan]{commit}[/cyan]")


def open_config() -> None:
    """Opens the global configuration file in the system default editor."""
    if not CONFIG_FILE.exists():
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            f.write(
                "# Git Tide Configuration\n\n"
                "[core]\n"
                '# root = "/srv/content"\n\n'
                "# [[repo]]\n"
                '# url = "git@github.com:user/repo"\n'
                '# path = "repo"\n'
                '# branch = "main"   # or "{latest}" to follow the newest tag\n'
                '# interval = "1hr"\n'
            )

    editor = os.environ.get("EDITOR")
    if not editor:
        if sys.platform == "darwin":
            editor = "open"
        else:
            editor = "nano"

    console.print(f"Opening [cyan]{CONFIG_FILE}[/cyan]...")

    try:
        subprocess.run([editor, str(CONFIG_FILE)])
    except Exception as e:
        console.print(f"[red]Could not open editor: {e}[/red]")


def tail_log() -> None:
    """Follows the daemon log file in real-time."""
    if not LOG_FILE.exists():
        console.print(f"[red]No log file found yet at {LOG_FILE}.[/red]")
        return

    console.print(f"Tailing [bold cyan]{LOG_FILE}[/bold cyan] (Ctrl+C to stop)...")
    try:
        subprocess.run(["tail", "-n", "1000", "-f", str(LOG_FILE)])
    except KeyboardInterrupt:
        console.print("\nStopped.", style="dim")


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="Git Tide Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    table.add_row(
        "core",
        "root",
        "str",
        "None",
        "Base directory for relative repository paths.",
    )
    table.add_row(
        "limits",
        "max_log_size",
        "int | str",
        '"5mb"',
        "Max size for log files before rotation (e.g., '5mb', '1gb').",
    )
    table.add_row(
        "[[repo]]", "url", "str", "required", "Remote location (may embed credentials)."
    )
    table.add_row(
        "", "path", "str", "core.root", "Clone target; relative to core.root."
    )
    table.add_row(
        "",
        "branch",
        "str",
        '"master"',
        "Branch to track, or '{latest}' to follow the newest tag.",
    )
    table.add_row(
        "",
        "interval",
        "int | str",
        '"1hr"',
        "Time between background pulls (e.g., '60s', '30m', 3600).",
    )
    table.add_row(
        "", "clone_args", "list | str", "[]", "Extra arguments for 'git clone'."
    )
    table.add_row("", "pull_args", "list | str", "[]", "Extra arguments for 'git pull'.")

    console.print(table)


class TideHelpFormatter(argparse.HelpFormatter):
    """Groups the subcommands into logical categories in the help output."""

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = []

            groups = {
                "Synchronization": ["run", "now", "checkout"],
                "Inspection": ["status", "config", "log"],
                "Service": ["install-service", "uninstall-service"],
                "General": ["help"],
            }

            subactions = list(self._iter_indented_subactions(action))

            for group_name, commands in groups.items():
                group_actions = [a for a in subactions if a.dest in commands]
                if not group_actions:
                    continue

                parts.append(f"\n  {group_name}:\n")

                self._indent()
                for subaction in group_actions:
                    parts.append(self._format_action(subaction))
                self._dedent()

            return self._join_parts(parts)

        return super()._format_action(action)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-tide",
        formatter_class=TideHelpFormatter,
        description="Keep local directories synchronized with remote git repositories.",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help=f"Config file (default: {CONFIG_FILE})",
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run the sync daemon in foreground")
    run_parser.add_argument(
        "--interactive",
        "-i",
        action="store_true",
        help="Log to stdout instead of the log file",
    )
    subparsers.add_parser("now", help="Pull every repository once")

    checkout_parser = subparsers.add_parser(
        "checkout", help="Check out a commit in a configured repository"
    )
    checkout_parser.add_argument("path", help="Local path of the repository")
    checkout_parser.add_argument("commit", help="Commit hash or ref to check out")

    subparsers.add_parser("status", help="Show daemon and repository status")

    config_parser = subparsers.add_parser(
        "config", help="Open global config file or view options"
    )
    config_parser.add_argument(
        "--list",
        "-l",
        action="store_true",
        help="List all available configuration options and their descriptions",
    )
    subparsers.add_parser("log", help="Tail the daemon log file")

    subparsers.add_parser("install-service", help="Install the background daemon")
    subparsers.add_parser("uninstall-service", help="Uninstall the background daemon")
    subparsers.add_parser("help", help="Show this help message")

    return parser


def main() -> None:
    """Main entry point for the Git Tide CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if args.command == "run":
        daemon.main(config_path=args.config, interactive=args.interactive)
    elif args.command == "now":
        failures = daemon.run_once(config_path=args.config)
        if failures:
            sys.exit(1)
    elif args.command == "checkout":
        checkout_commit(args.path, args.commit, config_path=args.config)
    elif args.command == "status":
        show_status(config_path=args.config)
    elif args.command == "config":
        if args.list:
            show_config_reference()
        else:
            open_config()
    elif args.command == "log":
        tail_log()
    elif args.command == "install-service":
        with console.status("Installing background service...", spinner="dots"):
            service.install()
    elif args.command == "uninstall-service":
        with console.status("Uninstalling service...", spinner="dots"):
            service.uninstall()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
