import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from reposync.errors import SyncTaskError
from reposync.git_wrapper import GitRunner, is_git_checkout, pull_changed


@pytest.mark.parametrize(
    ("stdout", "expected"),
    [
        ("Already up to date.", False),
        ("Already up-to-date.", False),
        ("Your branch is up to date with 'origin/main'.", False),
        ("", False),
        (
            "Updating 1a2b3c4..5d6e7f8\nFast-forward\n README.md | 2 +-\n"
            " 1 file changed, 1 insertion(+), 1 deletion(-)",
            True,
        ),
        ("From github.com:acme/api\n * [new tag]         v1.2.0     -> v1.2.0", False),
    ],
)
def test_pull_changed(stdout: str, expected: bool) -> None:
    """Verifies that no-op pulls are told apart from pulls that brought commits."""
    assert pull_changed(stdout) is expected


def test_is_git_checkout(tmp_path: Path) -> None:
    assert not is_git_checkout(tmp_path)
    (tmp_path / ".git").mkdir()
    assert is_git_checkout(tmp_path)
    assert not is_git_checkout(tmp_path / "missing")


def test_run_converts_nonzero_exit(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that git failures surface as SyncTaskError carrying stderr."""
    mocker.patch(
        "subprocess.run",
        side_effect=subprocess.CalledProcessError(
            1, ["git", "pull"], output="", stderr="fatal: Not possible to fast-forward\n"
        ),
    )

    with pytest.raises(SyncTaskError, match="Not possible to fast-forward") as exc_info:
        GitRunner().pull(tmp_path)

    assert exc_info.value.repo_name == tmp_path.name


def test_run_converts_timeout(mocker: MagicMock, tmp_path: Path) -> None:
    mocker.patch(
        "subprocess.run", side_effect=subprocess.TimeoutExpired(["git", "pull"], 5)
    )

    with pytest.raises(SyncTaskError, match="timed out after 5s"):
        GitRunner(timeout=5).pull(tmp_path)


def test_run_converts_missing_git(mocker: MagicMock, tmp_path: Path) -> None:
    mocker.patch("subprocess.run", side_effect=FileNotFoundError("git"))

    with pytest.raises(SyncTaskError, match="Could not run git"):
        GitRunner().pull(tmp_path)


def test_run_is_non_interactive(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies credential prompts are disabled and the timeout is passed down."""
    mock_run = mocker.patch("subprocess.run")
    mock_run.return_value.stdout = "Already up to date.\n"

    assert GitRunner(timeout=30).pull(tmp_path) is False

    args, kwargs = mock_run.call_args
    assert args[0] == ["git", "pull"]
    assert kwargs["cwd"] == tmp_path
    assert kwargs["timeout"] == 30
    assert kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"


def test_clone_refuses_stray_folder(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies a non-git folder with the repo's name is never overwritten."""
    target = tmp_path / "api"
    target.mkdir()
    (target / "notes.txt").write_text("mine")
    mock_run = mocker.patch("subprocess.run")

    with pytest.raises(SyncTaskError, match="exists and is not a git checkout"):
        GitRunner().clone("https://github.com/acme/api.git", target)

    mock_run.assert_not_called()
    assert (target / "notes.txt").read_text() == "mine"


def test_clone_into_empty_existing_dir_is_allowed(
    mocker: MagicMock, tmp_path: Path
) -> None:
    target = tmp_path / "api"
    target.mkdir()
    mock_run = mocker.patch.object(GitRunner, "_run", return_value="")

    assert GitRunner().clone("https://github.com/acme/api.git", target) is True

    mock_run.assert_called_once_with(
        ["clone", "https://github.com/acme/api.git", str(target)],
        cwd=tmp_path,
        name="api",
    )


def test_failed_clone_removes_partial_checkout(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies that an interrupted clone does not leave a half-written checkout."""
    target = tmp_path / "api"

    def half_clone(args: list[str], cwd: Path, name: str) -> str:
        (target / ".git" / "objects").mkdir(parents=True)
        raise SyncTaskError("fatal: early EOF", repo_name=name)

    mocker.patch.object(GitRunner, "_run", side_effect=half_clone)

    with pytest.raises(SyncTaskError, match="early EOF"):
        GitRunner().clone("https://github.com/acme/api.git", target)

    assert not target.exists()


def test_failed_clone_keeps_preexisting_empty_dir(
    mocker: MagicMock, tmp_path: Path
) -> None:
    target = tmp_path / "api"
    target.mkdir()
    mocker.patch.object(
        GitRunner, "_run", side_effect=SyncTaskError("fatal: repository not found")
    )

    with pytest.raises(SyncTaskError):
        GitRunner().clone("https://github.com/acme/api.git", target)

    assert target.is_dir()


def _git(cwd: Path, *args: str) -> None:
    subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
    )


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_clone_then_pull_against_real_git(tmp_path: Path) -> None:
    """Runs the real git binary against a local upstream repository."""
    upstream = tmp_path / "upstream"
    upstream.mkdir()
    _git(upstream, "init", "-q")
    _git(upstream, "commit", "-q", "--allow-empty", "-m", "initial")

    root = tmp_path / "repos"
    root.mkdir()
    checkout = root / "upstream"
    runner = GitRunner(timeout=60)

    assert runner.clone(str(upstream), checkout) is True
    assert is_git_checkout(checkout)

    assert runner.pull(checkout) is False

    (upstream / "file.txt").write_text("content\n")
    _git(upstream, "add", "file.txt")
    _git(upstream, "commit", "-q", "-m", "add file")

    assert runner.pull(checkout) is True
    assert (checkout / "file.txt").read_text() == "content\n"


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_clone_of_missing_upstream_fails_cleanly(tmp_path: Path) -> None:
    target = tmp_path / "ghost"

    with pytest.raises(SyncTaskError):
        GitRunner(timeout=60).clone(str(tmp_path / "does-not-exist"), target)

    assert not target.exists()
