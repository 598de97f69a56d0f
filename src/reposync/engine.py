"""
Reconciliation engine.

Wires one run together: remote listing and local scan, planning, concurrent
execution and aggregation. Fatal errors (RemoteFetchError, LocalScanError)
propagate before any repository is touched; per-repository failures only
ever appear as data in the summary.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from .config import Config
from .constants import APP_NAME
from .errors import ConfigError, SyncAbortedError
from .executor import ConcurrentExecutor, ExecutionPolicy
from .models import SyncOutcome, SyncPlan
from .planner import plan_sync
from .remote import RemoteRepositorySource
from .scanner import scan_local
from .summary import SyncSummary

logger = logging.getLogger(APP_NAME)


@dataclass
class SyncReport:
    """Everything a presentation layer needs about a finished run.

    Attributes:
        plan (SyncPlan): The planned tasks and archived checkouts.
        summary (SyncSummary): Aggregated outcomes.
    """

    plan: SyncPlan = field(default_factory=SyncPlan)
    summary: SyncSummary = field(default_factory=SyncSummary)


def build_source(config: Config) -> RemoteRepositorySource:
    """Creates the remote source described by the configuration."""
    gh = config.github
    return RemoteRepositorySource(
        url=gh.repo_url or "",
        token=gh.token,
        per_page=gh.per_page,
        timeout=gh.request_timeout,
        url_field=gh.url_field,
    )


def build_executor(config: Config) -> ConcurrentExecutor:
    """Creates an executor with the configured concurrency policy."""
    s = config.sync
    return ConcurrentExecutor(
        ExecutionPolicy(
            max_concurrency=s.concurrency,
            offload_blocking=s.offload_blocking,
            operation_timeout=s.operation_timeout,
            run_timeout=s.run_timeout,
        )
    )


async def make_plan(
    config: Config, source: RemoteRepositorySource | None = None
) -> SyncPlan:
    """Fetches the remote listing, scans the root and plans the run.

    Raises:
        RemoteFetchError: If the listing cannot be fetched completely.
        LocalScanError: If the root directory cannot be read.
    """
    config.validate()
    root = config.sync.root_dir
    if root is None:
        raise ConfigError("No local root directory configured.")

    source = source or build_source(config)
    remote = await source.fetch_all()
    local = scan_local(root)

    plan = plan_sync(
        remote,
        local,
        root,
        config.github.prefix,
        strip_prefix=config.github.strip_prefix,
        include_archived=config.github.include_archived,
    )
    logger.info(
        f"Planned {len(plan.tasks)} tasks: {len(plan.pulls)} pull, "
        f"{len(plan.clones)} clone ({len(plan.archived)} archived)"
    )
    return plan


async def run_sync(
    config: Config,
    *,
    source: RemoteRepositorySource | None = None,
    executor: ConcurrentExecutor | None = None,
    on_plan: Callable[[SyncPlan], None] | None = None,
    on_outcome: Callable[[SyncOutcome], None] | None = None,
) -> SyncReport:
    """Runs one full synchronization.

    Args:
        config (Config): Validated run configuration.
        source (RemoteRepositorySource | None): Listing source override.
        executor (ConcurrentExecutor | None): Executor override.
        on_plan (Callable[[SyncPlan], None] | None): Called once the plan is known.
        on_outcome (Callable[[SyncOutcome], None] | None): Called per outcome.

    Returns:
        SyncReport: The plan and the aggregated summary.

    Raises:
        SyncAbortedError: If `executor.stop()` was called while planning.
    """
    config.validate()
    executor = executor or build_executor(config)
    plan = await make_plan(config, source)
    if executor.stopped:
        raise SyncAbortedError("Stopped before any repository was touched.")
    if on_plan is not None:
        on_plan(plan)

    summary = SyncSummary()

    def collect(outcome: SyncOutcome) -> None:
        summary.add(outcome)
        if on_outcome is not None:
            on_outcome(outcome)

    await executor.run(plan.tasks, on_outcome=collect)

    logger.info(
        f"Sync finished: {summary.pulled} pulled, {summary.cloned} cloned, "
        f"{summary.failed} failed"
    )
    return SyncReport(plan=plan, summary=summary)


def sync(config: Config) -> SyncReport:
    """Blocking convenience wrapper around `run_sync`."""
    return asyncio.run(run_sync(config))
