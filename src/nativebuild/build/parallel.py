"""
Parallel task pool for the compile stages.

Both parallel stages (application units and runtime library sources) spawn
one compiler process per input with no shared state beyond the filesystem.
run_parallel is a barrier: it returns only after every task has finished,
and no task is cancelled when another one fails.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

from .process_runner import ProcessResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TaskOutcome(Generic[T]):
    """One finished task and the process result it produced."""

    item: T
    result: ProcessResult


@dataclass
class ParallelRun(Generic[T]):
    """Outcomes of a parallel stage.

    outcomes follows input order; failures follows completion order.
    """

    outcomes: List[TaskOutcome[T]] = field(default_factory=list)
    failures: List[TaskOutcome[T]] = field(default_factory=list)

    @property
    def first_failure(self) -> Optional[TaskOutcome[T]]:
        return self.failures[0] if self.failures else None

    @property
    def success(self) -> bool:
        return not self.failures


def run_parallel(
    task: Callable[[T], ProcessResult],
    items: Sequence[T],
    jobs: int = 1,
) -> ParallelRun[T]:
    """Run task over every item on a thread pool and wait for all of them.

    Args:
        task: Function spawning one process for an item
        items: Inputs, in the order outcomes should be reported
        jobs: Maximum number of concurrent tasks

    Returns:
        ParallelRun with every outcome

    Raises:
        Exception: The first exception raised by a task (not a non-zero
            exit), re-raised once all tasks have finished
    """
    run: ParallelRun[T] = ParallelRun()
    if not items:
        return run

    workers = max(1, min(jobs, len(items)))
    results: List[Optional[ProcessResult]] = [None] * len(items)
    errors: List[BaseException] = []

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(task, item): index for index, item in enumerate(items)}
        for future in as_completed(futures):
            index = futures[future]
            try:
                result = future.result()
            except Exception as e:
                logger.debug("task for %s raised %s", items[index], e)
                errors.append(e)
                continue
            results[index] = result
            if not result.success:
                run.failures.append(TaskOutcome(items[index], result))

    if errors:
        raise errors[0]

    for item, result in zip(items, results):
        if result is not None:
            run.outcomes.append(TaskOutcome(item, result))

    return run
