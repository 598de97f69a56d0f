"""Fold per-repository outcomes into run totals."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import SyncAction, SyncOutcome, SyncStatus


@dataclass
class SyncSummary:
    """Aggregate result of a run.

    The fold is commutative and associative, so the order in which outcomes
    complete does not change the counts. `failures` and `updated` are kept
    sorted by repository name.

    Attributes:
        pulled (int): Successful pulls (including no-op pulls).
        cloned (int): Successful clones.
        failed (int): Failed operations of either kind.
        failures (list[SyncOutcome]): The failed outcomes.
        updated (list[str]): Repositories whose pull brought new commits.
    """

    pulled: int = 0
    cloned: int = 0
    failed: int = 0
    failures: list[SyncOutcome] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.pulled + self.cloned + self.failed

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def add(self, outcome: SyncOutcome) -> None:
        """Folds a single outcome into the totals."""
        if outcome.status is SyncStatus.FAILURE:
            self.failed += 1
            self.failures.append(outcome)
            self.failures.sort(key=lambda o: o.name)
        elif outcome.task.action is SyncAction.CLONE:
            self.cloned += 1
        else:
            self.pulled += 1
            if outcome.changed:
                self.updated.append(outcome.name)
                self.updated.sort()

    def merge(self, other: "SyncSummary") -> "SyncSummary":
        """Combines two partial summaries into a new one."""
        return SyncSummary(
            pulled=self.pulled + other.pulled,
            cloned=self.cloned + other.cloned,
            failed=self.failed + other.failed,
            failures=sorted([*self.failures, *other.failures], key=lambda o: o.name),
            updated=sorted([*self.updated, *other.updated]),
        )


def summarize(outcomes: Iterable[SyncOutcome]) -> SyncSummary:
    """Folds outcomes (in any order) into a SyncSummary. Empty input gives zeros."""
    summary = SyncSummary()
    for outcome in outcomes:
        summary.add(outcome)
    return summary
