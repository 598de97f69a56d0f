"""Reconcile the remote listing against local checkouts."""

import logging
from collections.abc import Iterable
from pathlib import Path

from .constants import APP_NAME
from .models import (
    LocalEntry,
    RepositoryDescriptor,
    SyncAction,
    SyncPlan,
    SyncTask,
)

logger = logging.getLogger(APP_NAME)


def local_name(repo_name: str, prefix: str = "", strip_prefix: bool = False) -> str:
    """Returns the directory name a repository is checked out under."""
    if strip_prefix and prefix:
        stripped = repo_name.removeprefix(prefix)
        # A repository named exactly like the prefix keeps its name.
        return stripped or repo_name
    return repo_name


def plan_sync(
    remote: Iterable[RepositoryDescriptor],
    local: Iterable[LocalEntry],
    root: Path,
    prefix: str = "",
    *,
    strip_prefix: bool = False,
    include_archived: bool = False,
) -> SyncPlan:
    """Classifies every qualifying remote repository as PULL or CLONE.

    A descriptor qualifies when its name starts with `prefix` (if one is set),
    it does not repeat an earlier name or directory, and it is not archived
    (unless `include_archived`). Anything else is excluded entirely: not
    counted and not attempted. Archived repositories that have a local checkout are
    collected in `SyncPlan.archived` so they can be reported.

    Args:
        remote (Iterable[RepositoryDescriptor]): The remote listing.
        local (Iterable[LocalEntry]): Existing checkouts under `root`.
        root (Path): The directory holding all checkouts.
        prefix (str, optional): Name prefix filter. Defaults to "" (no filter).
        strip_prefix (bool, optional): Drop `prefix` from directory names.
        include_archived (bool, optional): Plan archived repositories too.

    Returns:
        SyncPlan: One task per qualifying repository, in listing order.
    """
    local_by_name = {entry.name: entry for entry in local}

    tasks: list[SyncTask] = []
    archived: list[LocalEntry] = []
    seen: set[str] = set()
    taken: set[str] = set()

    for repo in remote:
        if prefix and not repo.name.startswith(prefix):
            continue
        if repo.name in seen:
            continue
        seen.add(repo.name)

        dir_name = local_name(repo.name, prefix, strip_prefix)
        if dir_name in taken:
            logger.debug(
                f"Skipping {repo.name}: directory {dir_name} is already planned"
            )
            continue
        taken.add(dir_name)

        if repo.archived and not include_archived:
            if dir_name in local_by_name:
                archived.append(local_by_name[dir_name])
            continue

        action = SyncAction.PULL if dir_name in local_by_name else SyncAction.CLONE
        tasks.append(
            SyncTask(repository=repo, action=action, target_path=root / dir_name)
        )

    return SyncPlan(tasks=tuple(tasks), archived=tuple(archived))
