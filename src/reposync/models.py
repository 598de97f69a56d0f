"""Value types shared by the planner, executor and aggregator.

Every entity here is scoped to a single run: nothing is persisted between
invocations, and each run recomputes membership from scratch.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class RepositoryDescriptor:
    """A repository as listed by the remote team endpoint.

    Attributes:
        name (str): Repository name, unique within the team.
        clone_url (str): The URL git clones from.
        archived (bool): Whether GitHub flags the repository as archived.
    """

    name: str
    clone_url: str
    archived: bool = False


@dataclass(frozen=True)
class LocalEntry:
    """A direct child of the root directory that is a git checkout.

    Attributes:
        name (str): The directory name.
        path (Path): The full path to the checkout.
    """

    name: str
    path: Path


class SyncAction(Enum):
    """Operation planned for a repository."""

    PULL = "pull"
    CLONE = "clone"


class SyncStatus(Enum):
    """Result of executing a single task."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class SyncTask:
    """One planned pull-or-clone unit of work.

    Attributes:
        repository (RepositoryDescriptor): The remote repository.
        action (SyncAction): PULL if a local checkout existed at plan time,
            CLONE otherwise.
        target_path (Path): The checkout location, owned exclusively by this task.
    """

    repository: RepositoryDescriptor
    action: SyncAction
    target_path: Path

    @property
    def name(self) -> str:
        return self.repository.name


@dataclass(frozen=True)
class SyncOutcome:
    """The recorded result of executing one SyncTask.

    Attributes:
        task (SyncTask): The task that ran.
        status (SyncStatus): SUCCESS or FAILURE.
        error_detail (str | None): Error output for failures.
        changed (bool): True if a pull brought new commits or a clone succeeded.
    """

    task: SyncTask
    status: SyncStatus
    error_detail: str | None = None
    changed: bool = False

    @property
    def name(self) -> str:
        return self.task.repository.name

    @classmethod
    def success(cls, task: SyncTask, changed: bool) -> "SyncOutcome":
        return cls(task=task, status=SyncStatus.SUCCESS, changed=changed)

    @classmethod
    def failure(cls, task: SyncTask, detail: str) -> "SyncOutcome":
        return cls(task=task, status=SyncStatus.FAILURE, error_detail=detail)


@dataclass(frozen=True)
class SyncPlan:
    """Planner output.

    Attributes:
        tasks (tuple[SyncTask, ...]): One task per qualifying repository.
        archived (tuple[LocalEntry, ...]): Local checkouts whose remote
            repository is archived. Reported only, never touched.
    """

    tasks: tuple[SyncTask, ...] = ()
    archived: tuple[LocalEntry, ...] = field(default_factory=tuple)

    @property
    def pulls(self) -> list[SyncTask]:
        return [t for t in self.tasks if t.action is SyncAction.PULL]

    @property
    def clones(self) -> list[SyncTask]:
        return [t for t in self.tasks if t.action is SyncAction.CLONE]
