"""Error taxonomy for the synchronization engine.

Every error raised by the engine is attributable to exactly one repository.
"""


class GitTideError(Exception):
    """Base class for all Git Tide errors."""


class ConfigurationError(GitTideError):
    """An invalid repository specification or a path/origin mismatch.

    Raised while loading configuration or preparing a repository path.
    Fatal at startup and never retried.
    """


class ExecutionError(GitTideError):
    """The external command could not be started or exited non-zero.

    Attributes:
        command (list[str]): The full command line that was executed.
        returncode (int | None): The exit status, or None if the process
                                 never started.
        stderr (str): Captured error output, when available.
    """

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ):
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class TagResolutionError(GitTideError):
    """No tags exist on the remote of a repository tracking its latest tag."""
