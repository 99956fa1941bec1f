"""Tests for the Command Line Interface (CLI) module."""

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from conftest import COMMIT_A, REMOTE, FakeRunner
from rich.console import Console

from git_tide import cli
from git_tide.config import Config
from git_tide.repository import RepositorySpec, TrackBranch, TrackLatestTag


@pytest.fixture
def wide_console(mocker: MagicMock) -> None:
    """Keeps table cells from being folded at the default terminal width."""
    mocker.patch("git_tide.cli.console", Console(width=200))


def _spec(path: Path, url: str = REMOTE) -> RepositorySpec:
    return RepositorySpec(url=url, path=path, tracking=TrackBranch("main"))


@pytest.mark.parametrize(
    ("setup", "expected"),
    [
        ("missing", "Missing"),
        ("file", "Not a directory"),
        ("empty", "Empty"),
        ("plain", "Not a repository"),
    ],
)
def test_inspect_repository_without_git(
    tmp_path: Path, runner: FakeRunner, setup: str, expected: str
) -> None:
    """Verifies that on-disk states are reported without running git."""
    target = tmp_path / "zones"
    if setup == "file":
        target.write_text("")
    elif setup == "empty":
        target.mkdir()
    elif setup == "plain":
        target.mkdir()
        (target / "notes.txt").write_text("x")

    status, _, head = cli.inspect_repository(_spec(target), runner)

    assert status == expected
    assert head == "-"
    assert runner.calls == []


def test_inspect_repository_working_copy(tmp_path: Path, runner: FakeRunner) -> None:
    """Verifies a matching working copy reports its abbreviated HEAD."""
    (tmp_path / ".git").mkdir()

    assert cli.inspect_repository(_spec(tmp_path), runner) == (
        "Synced",
        "green",
        COMMIT_A[:12],
    )

    runner.outputs["config"] = "host/other/repo"
    assert cli.inspect_repository(_spec(tmp_path), runner)[0] == "Foreign origin"

    runner.failures["config"] = 1
    assert cli.inspect_repository(_spec(tmp_path), runner)[0] == "Error"


def test_show_status_lists_repositories(
    tmp_path: Path,
    capsys: pytest.CaptureFixture,
    mocker: MagicMock,
    wide_console: None,
) -> None:
    """Verifies that `show_status` shows the daemon and every repository, redacted."""
    pid_file = tmp_path / "daemon.pid"
    pid_file.write_text(str(os.getpid()))
    mocker.patch("git_tide.cli.PID_FILE", pid_file)
    mocker.patch("git_tide.cli.service.is_service_enabled", return_value=False)
    config = Config(
        repos=[
            _spec(Path("/nonexistent/zones"), url="user:pw@host/org/zones"),
            RepositorySpec(
                url="host/org/releases",
                path=Path("/nonexistent/releases"),
                tracking=TrackLatestTag(),
            ),
        ]
    )
    mocker.patch("git_tide.cli.Config.load", return_value=config)

    cli.show_status()

    out = capsys.readouterr().out
    assert f"Running (pid {os.getpid()})" in out
    assert "***@host/org/zones" in out
    assert "pw@" not in out
    assert "branch:main" in out
    assert "latest-tag" in out
    assert "Missing" in out


def test_show_status_daemon_stopped(
    tmp_path: Path,
    capsys: pytest.CaptureFixture,
    mocker: MagicMock,
    wide_console: None,
) -> None:
    mocker.patch("git_tide.cli.PID_FILE", tmp_path / "missing.pid")
    mocker.patch("git_tide.cli.service.is_service_enabled", return_value=False)
    mocker.patch("git_tide.cli.Config.load", return_value=Config())

    cli.show_status()

    out = capsys.readouterr().out
    assert "Stopped" in out
    assert "No repositories configured" in out


def test_checkout_unknown_path_exits(tmp_path: Path, mocker: MagicMock) -> None:
    mocker.patch(
        "git_tide.cli.Config.load",
        return_value=Config(repos=[_spec(tmp_path / "zones")]),
    )

    with pytest.raises(SystemExit) as exc_info:
        cli.checkout_commit(str(tmp_path / "elsewhere"), "abc123")

    assert exc_info.value.code == 1


def test_checkout_requires_a_clone(tmp_path: Path, mocker: MagicMock) -> None:
    """Verifies that a repository that was never cloned cannot be checked out."""
    runner = FakeRunner()
    mocker.patch("git_tide.daemon.CommandRunner", return_value=runner)
    mocker.patch(
        "git_tide.cli.Config.load",
        return_value=Config(repos=[_spec(tmp_path / "zones")]),
    )

    with pytest.raises(SystemExit):
        cli.checkout_commit(str(tmp_path / "zones"), "abc123")

    assert runner.count("checkout") == 0


def test_checkout_adopted_repository(tmp_path: Path, mocker: MagicMock) -> None:
    """Verifies that a configured working copy is checked out at the given commit."""
    (tmp_path / "zones" / ".git").mkdir(parents=True)
    runner = FakeRunner()
    mocker.patch("git_tide.daemon.CommandRunner", return_value=runner)
    mocker.patch(
        "git_tide.cli.Config.load",
        return_value=Config(repos=[_spec(tmp_path / "zones")]),
    )

    cli.checkout_commit(str(tmp_path / "zones"), "abc123")

    assert runner.calls[-1] == ["checkout", "abc123"]


def test_config_command_opens_editor(mocker: MagicMock) -> None:
    """Verifies that the `config` command attempts to open the editor.

    Args:
        mocker (MagicMock): Pytest fixture for mocking.
    """
    mocker.patch.dict("os.environ", {"EDITOR": "nano"})
    mock_run = mocker.patch("subprocess.run")

    # Mock the CONFIG_FILE object entirely to support .exists() and str()
    mock_config_path = mocker.MagicMock(spec=Path)
    mock_config_path.exists.return_value = True
    mock_config_path.__str__.return_value = "/mock/config.toml"

    mocker.patch("git_tide.cli.CONFIG_FILE", mock_config_path)

    cli.open_config()

    args = mock_run.call_args[0][0]
    assert args[0] == "nano"
    assert "/mock/config.toml" in str(args[1])


def test_config_command_writes_template(tmp_path: Path, mocker: MagicMock) -> None:
    """Verifies a commented template is created on first use."""
    config_file = tmp_path / "git-tide" / "config.toml"
    mocker.patch("git_tide.cli.CONFIG_FILE", config_file)
    mocker.patch.dict("os.environ", {"EDITOR": "vi"})
    mocker.patch("subprocess.run")

    cli.open_config()

    assert "[[repo]]" in config_file.read_text()


def test_main_now_runs_once(mocker: MagicMock) -> None:
    """Verifies that the `now` command triggers a single pass over all repositories."""
    mocker.patch("sys.argv", ["git-tide", "now"])
    mock_run_once = mocker.patch("git_tide.daemon.run_once", return_value=0)

    cli.main()

    mock_run_once.assert_called_once_with(config_path=None)


def test_main_now_exits_on_failures(mocker: MagicMock) -> None:
    mocker.patch("sys.argv", ["git-tide", "now"])
    mocker.patch("git_tide.daemon.run_once", return_value=2)

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1


def test_main_run_passes_options(mocker: MagicMock) -> None:
    """Verifies that global and subcommand options reach the daemon."""
    mocker.patch(
        "sys.argv", ["git-tide", "--config", "sites.toml", "run", "--interactive"]
    )
    mock_daemon = mocker.patch("git_tide.daemon.main")

    cli.main()

    mock_daemon.assert_called_once_with(
        config_path=Path("sites.toml"), interactive=True
    )


def test_help_groups_subcommands() -> None:
    help_text = cli.build_parser().format_help()

    assert "Synchronization:" in help_text
    assert "Inspection:" in help_text
    assert "install-service" in help_text
