import logging
import subprocess
from pathlib import Path

from .constants import APP_NAME, GIT_BINARY
from .errors import ExecutionError

logger = logging.getLogger(APP_NAME)


class CommandRunner:
    """Executes one external command inside a working directory.

    Two modes are offered: `run` for commands whose output is irrelevant and
    `run_capture` for commands whose stdout is the result. Neither mode
    interprets exit codes or output; any failure surfaces as an
    `ExecutionError`.
    """

    def run(self, command: str, args: list[str], cwd: Path | None = None) -> None:
        """Runs a command, discarding stdout and inheriting stderr.

        Blocks until the process exits.

        Args:
            command (str): The executable to run (resolved through PATH).
            args (list[str]): Arguments passed verbatim to the executable.
            cwd (Path | None, optional): The working directory. Defaults to the
                                         current process directory.

        Raises:
            ExecutionError: If the executable cannot be started or exits non-zero.
        """
        cmd = [command, *args]
        try:
            subprocess.run(cmd, cwd=cwd, stdout=subprocess.DEVNULL, check=True)
        except subprocess.CalledProcessError as e:
            raise ExecutionError(
                f"'{' '.join(cmd)}' exited with status {e.returncode}",
                command=cmd,
                returncode=e.returncode,
            ) from e
        except OSError as e:
            raise ExecutionError(
                f"Could not start '{command}': {e}", command=cmd
            ) from e

    def run_capture(
        self, command: str, args: list[str], cwd: Path | None = None
    ) -> str:
        """Runs a command and returns its stripped stdout.

        Args:
            command (str): The executable to run (resolved through PATH).
            args (list[str]): Arguments passed verbatim to the executable.
            cwd (Path | None, optional): The working directory.

        Returns:
            str: The standard output with surrounding whitespace removed.

        Raises:
            ExecutionError: If the executable cannot be started or exits non-zero.
        """
        cmd = [command, *args]
        try:
            res = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
            )
            return res.stdout.strip()
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise ExecutionError(
                f"'{' '.join(cmd)}' exited with status {e.returncode}: {stderr}",
                command=cmd,
                returncode=e.returncode,
                stderr=stderr,
            ) from e
        except OSError as e:
            raise ExecutionError(
                f"Could not start '{command}': {e}", command=cmd
            ) from e


class GitRepo:
    """The git verbs the sync engine needs, bound to one local path.

    Methods only assemble argument lists; execution and error reporting are
    delegated to the `CommandRunner`.

    Attributes:
        path (Path): The local working copy (or clone target).
        runner (CommandRunner): The executor used for every invocation.
    """

    def __init__(self, path: Path, runner: CommandRunner | None = None):
        self.path = path
        self.runner = runner or CommandRunner()

    def _run(self, args: list[str], capture: bool = False, cwd: bool = True) -> str:
        workdir = self.path if cwd else None
        # Only the verb is logged: clone arguments may carry credentials.
        logger.debug(f"git {args[0]} ({self.path})")
        if capture:
            return self.runner.run_capture(GIT_BINARY, args, workdir)
        self.runner.run(GIT_BINARY, args, workdir)
        return ""

    def clone(
        self, url: str, extra_args: list[str], branch: str | None = None
    ) -> None:
        """Clones `url` into the repository path.

        Args:
            url (str): The remote location (may embed credentials).
            extra_args (list[str]): Extra arguments placed before the url.
            branch (str | None, optional): Branch to check out. When None, the
                                           remote's default HEAD is used.
        """
        cmd = ["clone"]
        if branch is not None:
            cmd.extend(["-b", branch])
        cmd.extend([*extra_args, url, str(self.path)])
        self._run(cmd, cwd=False)

    def pull(self, branch: str, extra_args: list[str]) -> None:
        """Pulls `branch` from origin into the working copy."""
        self._run(["pull", *extra_args, "origin", branch])

    def fetch_tags(self) -> None:
        """Fetches tag refs from origin."""
        self._run(["fetch", "origin", "--tags"])

    def latest_tag(self) -> str:
        """Returns the most recently created tag, or an empty string if none exist."""
        return self._run(
            [
                "for-each-ref",
                "--sort=-creatordate",
                "--count=1",
                "--format=%(refname:short)",
                "refs/tags",
            ],
            capture=True,
        )

    def checkout(self, ref: str) -> None:
        """Checks out a tag reference or an arbitrary commit."""
        self._run(["checkout", ref])

    def origin_url(self) -> str:
        """Reads the configured `remote.origin.url` of the working copy."""
        return self._run(["config", "--get", "remote.origin.url"], capture=True)

    def head_commit(self) -> str:
        """Returns the full hash of the most recent commit."""
        return self._run(
            ["--no-pager", "log", "-n", "1", "--pretty=format:%H"], capture=True
        )


def redact_url(url: str) -> str:
    """Hides a password embedded in a remote location (user:pass@host/...).

    Args:
        url (str): The remote location, with or without a scheme.

    Returns:
        str: The location with its userinfo replaced by '***' if it held a
             password, otherwise unchanged.
    """
    scheme, sep, rest = url.rpartition("://")
    authority = rest.split("/", 1)[0]
    userinfo, at, _ = authority.rpartition("@")
    if not at or ":" not in userinfo:
        return url
    return f"{scheme}{sep}***@{rest[len(userinfo) + 1 :]}"
