"""Shared fixtures: a scripted command runner that never invokes git."""

import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from git_tide.errors import ExecutionError
from git_tide.git_wrapper import CommandRunner
from git_tide.puller import Puller
from git_tide.repository import RepositorySpec, TrackBranch, Tracking

REMOTE = "host/org/zones"
COMMIT_A = "a" * 40
COMMIT_B = "b" * 40


def _verb(args: list[str]) -> str:
    """Maps a git argument list to the verb used for scripting."""
    if args[0] == "--no-pager":
        return "log"
    return args[0]


class FakeRunner(CommandRunner):
    """Records git invocations and replays scripted outputs and failures.

    Attributes:
        calls (list[list[str]]): Every argument list received, in order.
        outputs (dict[str, str | list[str]]): Captured output per verb. A list
            is consumed front to back, repeating its last element.
        failures (dict[str, int]): Remaining forced failures per verb.
        fail_all (bool): Fail every invocation.
        delay (float): Seconds each invocation blocks for.
        max_active (int): Highest number of concurrent invocations observed.
    """

    def __init__(self, delay: float = 0.0):
        self.calls: list[list[str]] = []
        self.outputs: dict[str, str | list[str]] = {
            "log": COMMIT_A,
            "config": REMOTE,
            "for-each-ref": "",
        }
        self.failures: dict[str, int] = {}
        self.fail_all = False
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def _invoke(self, args: list[str]) -> str:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append(list(args))
        try:
            if self.delay:
                time.sleep(self.delay)
            verb = _verb(args)
            if self.fail_all or self.failures.get(verb, 0) > 0:
                if not self.fail_all:
                    self.failures[verb] -= 1
                raise ExecutionError(f"git {verb} failed", command=["git", *args])
            out = self.outputs.get(verb, "")
            if isinstance(out, list):
                return out.pop(0) if len(out) > 1 else out[0]
            return out
        finally:
            with self._lock:
                self.active -= 1

    def run(self, command: str, args: list[str], cwd: Path | None = None) -> None:
        self._invoke(args)

    def run_capture(
        self, command: str, args: list[str], cwd: Path | None = None
    ) -> str:
        return self._invoke(args)

    def verbs(self) -> list[str]:
        return [_verb(c) for c in self.calls]

    def count(self, verb: str) -> int:
        return self.verbs().count(verb)


@pytest.fixture(autouse=True, scope="session")
def isolated_lock_dir(tmp_path_factory: pytest.TempPathFactory) -> Iterator[Path]:
    """Keeps repository lock files out of the user's state directory."""
    lock_dir = tmp_path_factory.mktemp("locks")
    with pytest.MonkeyPatch.context() as mp:
        mp.setattr("git_tide.constants.LOCK_DIR", lock_dir)
        yield lock_dir


@pytest.fixture
def clock(mocker: MagicMock) -> MagicMock:
    """Replaces the puller's clocks with controllable values.

    `clock.time` is the wall clock reported by `last_pull`; `clock.monotonic`
    is the clock the debounce window is measured on.
    """
    fake = mocker.patch("git_tide.puller.time")
    fake.time.return_value = 1000.0
    fake.monotonic.return_value = 1000.0
    return fake


def advance(clock: MagicMock, seconds: float) -> None:
    """Moves both fake clocks forward together."""
    clock.time.return_value += seconds
    clock.monotonic.return_value += seconds


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_puller(
    tmp_path: Path, runner: FakeRunner
) -> Callable[..., Puller]:
    """Builds a puller targeting `tmp_path / 'zones'` with the shared fake runner."""

    def _make(
        tracking: Tracking = TrackBranch("main"),
        url: str = REMOTE,
        prepare: bool = True,
        **kwargs,
    ) -> Puller:
        spec = RepositorySpec(
            url=url, path=tmp_path / "zones", tracking=tracking, **kwargs
        )
        puller = Puller(spec, runner=runner)
        if prepare:
            puller.prepare()
        return puller

    return _make
