import logging
import os
import shutil
import subprocess
from pathlib import Path

from .constants import APP_NAME, GIT_MARKER, NEW_TAG_MARKER, PULL_NOOP_MARKERS
from .errors import SyncTaskError

logger = logging.getLogger(APP_NAME)


def is_git_checkout(path: Path) -> bool:
    """Checks whether a directory holds a git checkout.

    The marker may be a `.git` directory or, for worktrees and submodules,
    a `.git` file.

    Args:
        path (Path): The directory to inspect.

    Returns:
        bool: True if `path` is a directory containing the git marker.
    """
    try:
        return path.is_dir() and (path / GIT_MARKER).exists()
    except OSError as e:
        logger.debug(f"Could not inspect {path}: {e}")
        return False


def pull_changed(stdout: str) -> bool:
    """Interprets `git pull` output.

    Args:
        stdout (str): The captured standard output of `git pull`.

    Returns:
        bool: False if the branch was already up to date (a fetch that only
              brought new tags counts as up to date), True otherwise.
    """
    text = stdout.strip()
    if not text:
        return False
    if any(marker in text for marker in PULL_NOOP_MARKERS):
        return False
    # Tag-only fetches print one "[new tag]" line per tag and nothing else.
    lines = [line for line in text.splitlines() if line.strip()]
    if lines and all(
        NEW_TAG_MARKER in line or line.startswith("From ") for line in lines
    ):
        return False
    return True


class GitRunner:
    """Runs the blocking git operations the executor schedules.

    Every invocation is non-interactive: credential prompts are disabled and
    SSH runs in batch mode, so an unattended run fails fast instead of hanging
    on a password prompt.

    Attributes:
        timeout (float | None): Seconds before a single git process is killed.
        git (str): The git executable.
    """

    def __init__(self, timeout: float | None = None, git: str = "git"):
        """Initializes the GitRunner instance.

        Args:
            timeout (float | None, optional): Per-operation timeout in seconds.
                                              Defaults to None (no limit).
            git (str, optional): The git executable to invoke. Defaults to "git".
        """
        self.timeout = timeout
        self.git = git

    @staticmethod
    def _env() -> dict[str, str]:
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_SSH_COMMAND", "ssh -o BatchMode=yes")
        return env

    def _run(self, args: list[str], cwd: Path, name: str) -> str:
        """Executes a git command and returns its stripped stdout.

        Args:
            args (list[str]): Arguments passed to git.
            cwd (Path): Working directory for the subprocess.
            name (str): Repository name, attached to any raised error.

        Returns:
            str: The stripped stdout of the command.

        Raises:
            SyncTaskError: If git exits non-zero, times out, or cannot be started.
        """
        try:
            res = subprocess.run(
                [self.git, *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
                env=self._env(),
                timeout=self.timeout,
            )
            return res.stdout.strip()
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip() or f"exit status {e.returncode}"
            raise SyncTaskError(detail, repo_name=name) from e
        except subprocess.TimeoutExpired as e:
            raise SyncTaskError(
                f"git {args[0]} timed out after {self.timeout:g}s", repo_name=name
            ) from e
        except OSError as e:
            raise SyncTaskError(f"Could not run git: {e}", repo_name=name) from e

    def pull(self, path: Path) -> bool:
        """Updates an existing checkout in place against its configured remote.

        Args:
            path (Path): The checkout to update.

        Returns:
            bool: True if new commits were pulled, False if already up to date.

        Raises:
            SyncTaskError: If the pull fails (diverged branch, dirty tree,
                           network error, timeout).
        """
        out = self._run(["pull"], cwd=path, name=path.name)
        return pull_changed(out)

    def clone(self, url: str, path: Path) -> bool:
        """Clones `url` into `path`.

        A target that already exists must be an empty directory; anything else
        (typically a stray folder carrying the repository's name) is refused
        and left untouched. If the clone fails and the target did not exist
        beforehand, the partial checkout is removed.

        Args:
            url (str): The repository URL to clone.
            path (Path): The destination directory.

        Returns:
            bool: Always True; a clone is a change.

        Raises:
            SyncTaskError: If the target is occupied or the clone fails.
        """
        existed = path.exists()
        if existed and (not path.is_dir() or any(path.iterdir())):
            raise SyncTaskError(
                f"{path} exists and is not a git checkout", repo_name=path.name
            )

        try:
            self._run(["clone", url, str(path)], cwd=path.parent, name=path.name)
        except SyncTaskError:
            if not existed:
                self._remove_partial(path)
            raise
        return True

    @staticmethod
    def _remove_partial(path: Path) -> None:
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
            logger.debug(f"Removed partial clone at {path}")
        except OSError as e:
            logger.warning(f"Could not remove partial clone at {path}: {e}")
