"""Shared fixtures and fakes for the reposync test-suite."""

import threading
import time
from pathlib import Path

import pytest

from reposync.config import Config
from reposync.errors import SyncTaskError
from reposync.models import RepositoryDescriptor


def repo(name: str, archived: bool = False) -> RepositoryDescriptor:
    """Builds a descriptor with a predictable clone URL."""
    return RepositoryDescriptor(
        name=name, clone_url=f"https://github.com/acme/{name}.git", archived=archived
    )


class FakeRunner:
    """Stands in for GitRunner without spawning git.

    Clones create a `.git` directory so a second run sees the checkout.
    Names listed in `fail` raise SyncTaskError; names in `changed` report
    new commits on pull. `delay` makes every operation block, and the peak
    number of simultaneous operations is recorded.
    """

    def __init__(
        self,
        fail: set[str] | None = None,
        changed: set[str] | None = None,
        delay: float = 0.0,
    ):
        self.fail = fail or set()
        self.changed = changed or set()
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def _enter(self, op: str, name: str) -> None:
        with self._lock:
            self.calls.append((op, name))
            self.active += 1
            self.peak = max(self.peak, self.active)
        if self.delay:
            time.sleep(self.delay)

    def _leave(self) -> None:
        with self._lock:
            self.active -= 1

    def pull(self, path: Path) -> bool:
        self._enter("pull", path.name)
        try:
            if path.name in self.fail:
                raise SyncTaskError(f"pull failed for {path.name}", repo_name=path.name)
            return path.name in self.changed
        finally:
            self._leave()

    def clone(self, url: str, path: Path) -> bool:
        self._enter("clone", path.name)
        try:
            if path.name in self.fail:
                raise SyncTaskError(
                    f"fatal: could not read from {url}", repo_name=path.name
                )
            (path / ".git").mkdir(parents=True, exist_ok=True)
            return True
        finally:
            self._leave()


class FakeSource:
    """An in-memory remote listing."""

    def __init__(self, repos: list[RepositoryDescriptor], error: Exception | None = None):
        self.repos = repos
        self.error = error
        self.calls = 0

    async def fetch_all(self) -> list[RepositoryDescriptor]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.repos)


def make_checkout(root: Path, name: str) -> Path:
    """Creates a directory that looks like a git checkout."""
    path = root / name
    (path / ".git").mkdir(parents=True)
    return path


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """An empty directory to sync into."""
    path = tmp_path / "repos"
    path.mkdir()
    return path


@pytest.fixture
def config(root: Path) -> Config:
    """A valid configuration pointing at the `root` fixture."""
    conf = Config()
    conf.github.repo_url = "https://api.github.com/organizations/1/team/2/repos"
    conf.sync.root_dir = root
    conf.sync.concurrency = 4
    return conf
