import logging
import threading
import time

from .constants import APP_NAME, DEBOUNCE_WINDOW, NUM_RETRIES
from .errors import ConfigurationError, GitTideError, TagResolutionError
from .git_wrapper import CommandRunner, GitRepo, redact_url
from .locking import repository_lock
from .prepare import prepare_path
from .repository import (
    RepositorySpec,
    RepositoryState,
    RepositoryStatus,
    SyncState,
    TrackBranch,
)


class Puller:
    """Keeps one local directory converged with its remote repository.

    The puller owns the repository's mutable state and the lock guarding it.
    Every synchronization attempt, whether scheduled, eager at startup, or
    triggered by hand, holds the lock for its full duration. It also holds the
    repository's lock file, which other git-tide processes take too, so at
    most one git process ever runs against the directory.

    State machine:
        UNINITIALIZED   -> clone (then TRACKING_BRANCH or TRACKING_TAG)
        TRACKING_BRANCH -> git pull origin <branch>
        TRACKING_TAG    -> fetch tags, check out the newest one if it changed

    Attributes:
        spec (RepositorySpec): The immutable repository description.
        repo (GitRepo): Git verbs bound to `spec.path`.
        logger (logging.Logger): The logger all messages are written to.
    """

    def __init__(
        self,
        spec: RepositorySpec,
        runner: CommandRunner | None = None,
        logger: logging.Logger | None = None,
    ):
        self.spec = spec
        self.repo = GitRepo(spec.path, runner)
        self.logger = logger or logging.getLogger(APP_NAME)
        self._state = RepositoryState()
        self._lock = threading.Lock()
        self._prepared = False

    @property
    def name(self) -> str:
        return str(self.spec.path)

    def _tracking_state(self) -> SyncState:
        if self.spec.tracks_tag:
            return SyncState.TRACKING_TAG
        return SyncState.TRACKING_BRANCH

    def prepare(self) -> None:
        """Validates the local path. Must run once before the first pull.

        An existing working copy of the same origin is adopted, so the first
        pull after a restart pulls rather than re-clones.

        Raises:
            ConfigurationError: If the path cannot be used for this repository.
        """
        with self._lock:
            if prepare_path(self.spec.url, self.repo):
                self._state.sync_state = self._tracking_state()
            else:
                self._state.sync_state = SyncState.UNINITIALIZED
            self._prepared = True

    def pull(self) -> bool:
        """Runs one synchronization attempt with debounce and bounded retry.

        Returns:
            bool: True if the recorded commit changed, False if the pull was
                  debounced or brought no new content.

        Raises:
            GitTideError: The last error, once every attempt has failed. The
                          recorded state is left as it was before the call.
        """
        with self._lock:
            if not self._prepared:
                raise ConfigurationError(
                    f"{self.name} must be prepared before pulling"
                )

            # Monotonic, so a wall-clock step backwards cannot stall syncing.
            mark = self._state.debounce_mark
            if mark is not None and time.monotonic() - mark < DEBOUNCE_WINDOW:
                return False

            with repository_lock(self.spec.path):
                return self._pull_locked()

    def _pull_locked(self) -> bool:
        """Runs the retry loop. Both the thread lock and the lock file are held."""
        last_commit = self._state.last_commit

        error: GitTideError | None = None
        for attempt in range(1, NUM_RETRIES + 1):
            try:
                self._converge()
                error = None
                break
            except GitTideError as e:
                error = e
                self.logger.warning(
                    f"PULL FAILED {self.name} "
                    f"(attempt {attempt}/{NUM_RETRIES}): {e}"
                )

        if error is not None:
            raise error

        self._state.last_pull = time.time()
        self._state.debounce_mark = time.monotonic()
        if self._state.last_commit == last_commit:
            self.logger.info(f"UP TO DATE {self.name}: No new changes")
            return False

        self.logger.info(
            f"UPDATED {self.name}: {last_commit or '(none)'} -> "
            f"{self._state.last_commit}"
        )
        return True

    def _converge(self) -> None:
        """Performs the convergence step for the current state."""
        tracking = self.spec.tracking
        if self._state.sync_state is SyncState.UNINITIALIZED:
            self._clone()
        elif isinstance(tracking, TrackBranch):
            self._pull_branch(tracking.name)
        else:
            self._checkout_latest_tag()

    def _clone(self) -> None:
        tracking = self.spec.tracking
        branch = tracking.name if isinstance(tracking, TrackBranch) else None
        self.repo.clone(self.spec.url, list(self.spec.clone_args), branch=branch)
        self.logger.info(f"CLONED {self.name} from {redact_url(self.spec.url)}")

        # The clone exists from here on: later attempts must not clone again.
        self._state.sync_state = self._tracking_state()
        self._state.last_commit = self.repo.head_commit()

        if self.spec.tracks_tag:
            self._checkout_latest_tag()

    def _pull_branch(self, branch: str) -> None:
        self.repo.pull(branch, list(self.spec.pull_args))
        self._state.last_commit = self.repo.head_commit()
        self.logger.debug(f"PULLED {self.name} ({branch})")

    def _checkout_latest_tag(self) -> None:
        self.repo.fetch_tags()
        tag = self.repo.latest_tag()
        if not tag:
            raise TagResolutionError(
                f"no tags found for repo: {redact_url(self.spec.url)}"
            )
        if tag == self._state.current_tag:
            return

        self.repo.checkout(f"tags/{tag}")
        commit = self.repo.head_commit()
        self._state.current_tag = tag
        self._state.last_commit = commit
        self.logger.info(f"CHECKOUT {self.name}: tag {tag}")

    def checkout_commit(self, commit: str) -> None:
        """Checks out an arbitrary commit for manual intervention.

        The recorded convergence state is left untouched, so the next
        scheduled pull converges the directory again.

        Args:
            commit (str): Any commit-ish git accepts.

        Raises:
            ExecutionError: If the checkout fails.
        """
        with self._lock, repository_lock(self.spec.path):
            self.repo.checkout(commit)
            self.logger.info(f"CHECKOUT {self.name}: commit {commit}")

    # --- Read-only accessors ---

    @property
    def last_commit(self) -> str | None:
        with self._lock:
            return self._state.last_commit

    @property
    def initialized(self) -> bool:
        with self._lock:
            return self._state.initialized

    @property
    def last_pull(self) -> float | None:
        with self._lock:
            return self._state.last_pull

    @property
    def current_tag(self) -> str | None:
        with self._lock:
            return self._state.current_tag

    @property
    def sync_state(self) -> SyncState:
        with self._lock:
            return self._state.sync_state

    def status(self) -> RepositoryStatus:
        """Returns a consistent snapshot of the repository for health reporting."""
        with self._lock:
            return RepositoryStatus(
                url=redact_url(self.spec.url),
                path=self.spec.path,
                mode=self.spec.mode_label,
                initialized=self._state.initialized,
                last_commit=self._state.last_commit,
                last_pull=self._state.last_pull,
                current_tag=self._state.current_tag,
            )
