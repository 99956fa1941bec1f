"""Tests for local path validation before the first synchronization."""

from pathlib import Path

import pytest
from conftest import REMOTE, FakeRunner

from git_tide.errors import ConfigurationError
from git_tide.git_wrapper import GitRepo
from git_tide.prepare import prepare_path, same_origin


def test_missing_path_is_created(tmp_path: Path, runner: FakeRunner) -> None:
    """Verifies that a nonexistent path (and its parents) is created empty."""
    target = tmp_path / "a" / "b" / "zones"

    assert prepare_path(REMOTE, GitRepo(target, runner)) is False

    assert target.is_dir()
    assert list(target.iterdir()) == []
    assert runner.calls == []


def test_empty_directory_is_accepted(tmp_path: Path, runner: FakeRunner) -> None:
    """Verifies that an existing empty directory is ready for a fresh clone."""
    assert prepare_path(REMOTE, GitRepo(tmp_path, runner)) is False
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize("origin", [REMOTE, REMOTE + ".git"])
def test_matching_working_copy_is_adopted(
    tmp_path: Path, runner: FakeRunner, origin: str
) -> None:
    """Verifies a working copy of the same remote is adopted, ignoring '.git'."""
    (tmp_path / ".git").mkdir()
    runner.outputs["config"] = origin

    assert prepare_path(REMOTE, GitRepo(tmp_path, runner)) is True
    assert runner.calls == [["config", "--get", "remote.origin.url"]]


def test_foreign_working_copy_is_rejected(tmp_path: Path, runner: FakeRunner) -> None:
    """Verifies a working copy of another remote fails and is left untouched."""
    (tmp_path / ".git").mkdir()
    (tmp_path / "db.example.org").write_text("zone data")
    runner.outputs["config"] = "host/other/repo"

    with pytest.raises(ConfigurationError, match="another git repo"):
        prepare_path(REMOTE, GitRepo(tmp_path, runner))

    assert (tmp_path / "db.example.org").read_text() == "zone data"
    assert (tmp_path / ".git").is_dir()


def test_non_repository_directory_is_rejected(
    tmp_path: Path, runner: FakeRunner
) -> None:
    """Verifies a non-empty plain directory fails without being modified."""
    (tmp_path / "notes.txt").write_text("keep me")

    with pytest.raises(ConfigurationError, match="directory not empty"):
        prepare_path(REMOTE, GitRepo(tmp_path, runner))

    assert [p.name for p in tmp_path.iterdir()] == ["notes.txt"]
    assert runner.calls == []


def test_regular_file_is_rejected(tmp_path: Path, runner: FakeRunner) -> None:
    """Verifies that a path pointing at a file cannot be used as a clone target."""
    target = tmp_path / "zones"
    target.write_text("")

    with pytest.raises(ConfigurationError, match="not a directory"):
        prepare_path(REMOTE, GitRepo(target, runner))


def test_unreadable_origin_is_a_configuration_error(
    tmp_path: Path, runner: FakeRunner
) -> None:
    """Verifies a working copy without a readable origin is rejected."""
    (tmp_path / ".git").mkdir()
    runner.failures["config"] = 1

    with pytest.raises(ConfigurationError, match="cannot retrieve repo url"):
        prepare_path(REMOTE, GitRepo(tmp_path, runner))


def test_same_origin_only_ignores_trailing_suffix() -> None:
    assert same_origin("git@host:org/zones.git", "git@host:org/zones")
    assert same_origin("https://host/org/zones", "https://host/org/zones")
    assert not same_origin("https://host/org/zones", "https://host/org/other")
    assert not same_origin("https://host/org/zones.git.bak", "https://host/org/zones")
