"""Repository specifications, tracking modes and per-repository sync state."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .constants import DEFAULT_BRANCH, DEFAULT_INTERVAL


@dataclass(frozen=True)
class TrackBranch:
    """Converge by repeatedly pulling a named branch.

    Attributes:
        name (str): The branch to clone and pull.
    """

    name: str


@dataclass(frozen=True)
class TrackLatestTag:
    """Converge by checking out the most recently created tag."""


Tracking = TrackBranch | TrackLatestTag


@dataclass(frozen=True)
class RepositorySpec:
    """Immutable description of one synchronized repository.

    Attributes:
        url (str): The remote location. May embed credentials.
        path (Path): The absolute local directory to clone into.
        tracking (Tracking): Branch or latest-tag convergence, fixed for life.
        interval (int): Seconds between background pulls.
        clone_args (tuple[str, ...]): Extra arguments passed to `git clone`.
        pull_args (tuple[str, ...]): Extra arguments passed to `git pull`.
    """

    url: str
    path: Path
    tracking: Tracking = field(default_factory=lambda: TrackBranch(DEFAULT_BRANCH))
    interval: int = DEFAULT_INTERVAL
    clone_args: tuple[str, ...] = ()
    pull_args: tuple[str, ...] = ()

    @property
    def tracks_tag(self) -> bool:
        return isinstance(self.tracking, TrackLatestTag)

    @property
    def mode_label(self) -> str:
        """A short human-readable description of the tracking mode."""
        if isinstance(self.tracking, TrackBranch):
            return f"branch:{self.tracking.name}"
        return "latest-tag"


class SyncState(Enum):
    UNINITIALIZED = "uninitialized"
    TRACKING_BRANCH = "tracking-branch"
    TRACKING_TAG = "tracking-tag"


@dataclass
class RepositoryState:
    """Mutable sync bookkeeping, guarded by the owning puller's lock.

    Attributes:
        sync_state (SyncState): Which convergence step the next pull runs.
        last_pull (float | None): Epoch seconds of the last successful pull.
        debounce_mark (float | None): `time.monotonic()` reading of the same
                                      pull, compared against the debounce window.
        last_commit (str | None): Hash of the most recently observed commit.
        current_tag (str | None): The checked-out tag in latest-tag mode.
    """

    sync_state: SyncState = SyncState.UNINITIALIZED
    last_pull: float | None = None
    debounce_mark: float | None = None
    last_commit: str | None = None
    current_tag: str | None = None

    @property
    def initialized(self) -> bool:
        return self.sync_state is not SyncState.UNINITIALIZED


@dataclass(frozen=True)
class RepositoryStatus:
    """A point-in-time snapshot of a repository, for health reporting."""

    url: str
    path: Path
    mode: str
    initialized: bool
    last_commit: str | None
    last_pull: float | None
    current_tag: str | None
