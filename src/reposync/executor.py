"""
Concurrent execution of planned pull/clone tasks.

Each SyncTask becomes one asyncio task. A counting semaphore bounds how many
git processes run at once, and the blocking subprocess call is handed to a
dedicated thread pool so waiting on one repository never stalls the others.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from .config import default_concurrency
from .constants import APP_NAME
from .git_wrapper import GitRunner
from .models import SyncAction, SyncOutcome, SyncTask

logger = logging.getLogger(APP_NAME)

CANCELLED_DETAIL = "cancelled before start"


@dataclass
class ExecutionPolicy:
    """Concurrency policy for a run.

    Attributes:
        max_concurrency (int): Maximum simultaneous git operations.
        offload_blocking (bool): Run git on a dedicated thread pool. When False,
            operations run inline on the event loop and are effectively serial.
        operation_timeout (float | None): Seconds before one git process is killed.
        run_timeout (float | None): Seconds after which no new operation starts.
    """

    max_concurrency: int = field(default_factory=default_concurrency)
    offload_blocking: bool = True
    operation_timeout: float | None = 600.0
    run_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError(
                f"max_concurrency must be positive, got {self.max_concurrency}"
            )


class ConcurrentExecutor:
    """Runs every task and returns exactly one outcome per task.

    A failing operation is converted into a FAILURE outcome and never affects
    its siblings. There is no retry. After `stop()`, tasks that have not
    started resolve to FAILURE with CANCELLED_DETAIL while in-flight
    operations run to completion (or to their timeout).

    The runner must provide `pull(path) -> bool` and `clone(url, path) -> bool`,
    returning whether anything changed and raising on failure.
    """

    def __init__(self, policy: ExecutionPolicy | None = None, runner=None):
        self.policy = policy or ExecutionPolicy()
        self.runner = runner or GitRunner(timeout=self.policy.operation_timeout)
        self._stopped = False
        self.in_flight = 0
        self.peak_in_flight = 0

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """Stops new operations from starting."""
        if not self._stopped:
            logger.warning("Stop requested: no new operations will start.")
        self._stopped = True

    def execute(self, task: SyncTask) -> SyncOutcome:
        """Runs one task's blocking operation and records its outcome."""
        verb = "PULL" if task.action is SyncAction.PULL else "CLONE"
        try:
            if task.action is SyncAction.PULL:
                changed = self.runner.pull(task.target_path)
            else:
                changed = self.runner.clone(
                    task.repository.clone_url, task.target_path
                )
        except Exception as e:
            detail = str(e).strip() or type(e).__name__
            # Recovered here and reported through the summary.
            logger.info(f"{verb} ERROR {task.name}: {detail}")
            return SyncOutcome.failure(task, detail)

        if task.action is SyncAction.CLONE:
            logger.info(f"CLONED {task.name}")
        elif changed:
            logger.info(f"UPDATED {task.name}")
        else:
            logger.debug(f"UP TO DATE {task.name}")
        return SyncOutcome.success(task, changed)

    async def run(
        self,
        tasks: Iterable[SyncTask],
        on_outcome: Callable[[SyncOutcome], None] | None = None,
    ) -> list[SyncOutcome]:
        """Executes all tasks concurrently.

        Args:
            tasks (Iterable[SyncTask]): The planned tasks.
            on_outcome (Callable[[SyncOutcome], None] | None, optional): Called
                once per outcome, in completion order, from the event loop.

        Returns:
            list[SyncOutcome]: One outcome per task, in completion order.
        """
        tasks = list(tasks)
        if not tasks:
            return []

        loop = asyncio.get_running_loop()
        gate = asyncio.Semaphore(self.policy.max_concurrency)
        pool = None
        if self.policy.offload_blocking:
            pool = ThreadPoolExecutor(
                max_workers=min(self.policy.max_concurrency, len(tasks)),
                thread_name_prefix=APP_NAME,
            )

        deadline = None
        if self.policy.run_timeout is not None:
            deadline = loop.call_later(self.policy.run_timeout, self.stop)

        async def run_one(task: SyncTask) -> SyncOutcome:
            async with gate:
                if self._stopped:
                    return SyncOutcome.failure(task, CANCELLED_DETAIL)
                self.in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
                try:
                    if pool is not None:
                        return await loop.run_in_executor(pool, self.execute, task)
                    return self.execute(task)
                finally:
                    self.in_flight -= 1

        outcomes: list[SyncOutcome] = []
        try:
            pending = [asyncio.create_task(run_one(task)) for task in tasks]
            # Single consumer: outcomes are folded here, one at a time.
            for next_done in asyncio.as_completed(pending):
                outcome = await next_done
                outcomes.append(outcome)
                if on_outcome is not None:
                    on_outcome(outcome)
        finally:
            if deadline is not None:
                deadline.cancel()
            if pool is not None:
                # Threads cannot be interrupted; in-flight git processes are
                # bounded by the operation timeout.
                pool.shutdown(wait=True, cancel_futures=True)

        return outcomes
