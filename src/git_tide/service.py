import shutil
import subprocess
import sys
from pathlib import Path

from rich.console import Console

from .constants import APP_LABEL

console = Console()


def get_executable() -> str:
    """Locates the installed daemon executable in the system path.

    Returns:
        str: The absolute path to the 'git-tide-daemon' executable.

    Raises:
        SystemExit: If the executable is not found in the PATH.
    """
    exe = shutil.which("git-tide-daemon")
    if not exe:
        console.print(
            "[bold red]ERROR:[/bold red] Could not find 'git-tide-daemon'. "
            "Ensure the package is installed."
        )
        sys.exit(1)
    return exe


def get_unit_path() -> Path:
    """Resolves the systemd user unit path for the daemon service."""
    return Path.home() / f".config/systemd/user/{APP_LABEL}.service"


def render_unit(executable: str) -> str:
    """Renders the systemd unit for a long-running sync daemon.

    The daemon schedules its own pulls, so no timer unit is involved.
    """
    return f"""[Unit]
Description=Git Tide Repository Sync Daemon
After=network-online.target

[Service]
ExecStart={executable}
Restart=on-failure
RestartSec=30

[Install]
WantedBy=default.target
"""


def install_linux(unit_path: Path, executable: str) -> None:
    """Writes the systemd user service, reloads systemd and enables the unit.

    Args:
        unit_path (Path): The target path for the .service file.
        executable (str): The path to the daemon executable.
    """
    unit_path.parent.mkdir(parents=True, exist_ok=True)
    with open(unit_path, "w") as f:
        f.write(render_unit(executable))

    subprocess.run(["systemctl", "--user", "daemon-reload"], check=True)
    subprocess.run(
        ["systemctl", "--user", "enable", "--now", f"{APP_LABEL}.service"], check=True
    )
    console.print(
        f"[bold green]SUCCESS:[/bold green] Git Tide service active (Linux).\n"
        f"Check status: systemctl --user status {APP_LABEL}.service"
    )


def install() -> None:
    """Installs the background daemon service.

    Only systemd (Linux) is supported; elsewhere a note is printed.
    """
    if not sys.platform.startswith("linux"):
        console.print(
            "\n[bold yellow]NOTE:[/bold yellow] Service installation is only "
            "supported on Linux (systemd)."
        )
        console.print("Run the daemon under your own supervisor:")
        console.print("   [green]git-tide run[/green]\n")
        return

    install_linux(get_unit_path(), get_executable())


def uninstall() -> None:
    """Disables the systemd user service and removes its unit file."""
    if not sys.platform.startswith("linux"):
        console.print(
            "\n[bold yellow]NOTE:[/bold yellow] No service is installed on this "
            "platform.\n"
        )
        return

    unit_path = get_unit_path()
    subprocess.run(
        ["systemctl", "--user", "disable", "--now", unit_path.name],
        stderr=subprocess.DEVNULL,
    )
    if unit_path.exists():
        unit_path.unlink()

    subprocess.run(["systemctl", "--user", "daemon-reload"])
    console.print("[bold green]SUCCESS:[/bold green] Service uninstalled.")


def is_service_enabled() -> bool:
    """Reports whether the systemd user service is enabled."""
    if not sys.platform.startswith("linux"):
        return False
    try:
        res = subprocess.run(
            ["systemctl", "--user", "is-enabled", f"{APP_LABEL}.service"],
            capture_output=True,
            text=True,
        )
        return res.stdout.strip() == "enabled"
    except OSError:
        return False
