"""
Thread Test Harness - Run test logic on many threads at once.

Provides:
- Parallel execution of a workload on N threads with M iterations each
- Per-worker completion accounting
- First-failure capture and replay on the calling thread

Usage:
    from probekit.threads import ThreadTestHarness

    harness = ThreadTestHarness(thread_count=10, tests_per_thread=100)
    harness.execute(
        lambda worker, iteration: cache.set(f"{worker}-{iteration}", iteration),
        on_worker_done=lambda worker: cache.flush(),
    )
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Union

import numpy as np

from probekit.errors import IncompleteExecutionError, WorkerFailureError

logger = logging.getLogger(__name__)

THREAD_NAME_PREFIX = "ThreadTestHarness-Thread"


class TestRunnable(ABC):
    """Workload executed by every harness thread.

    ``run`` is called once per iteration, ``do_end`` once per thread after
    the last iteration. Both may raise to fail the test.
    """

    __test__ = False  # not a pytest test class

    @abstractmethod
    def run(self, worker: int, iteration: int) -> None:
        """Execute one iteration on thread ``worker``."""

    def do_end(self, worker: int) -> None:
        """Called after the iterations of thread ``worker`` have finished."""


Work = Union[TestRunnable, Callable[[int, int], object]]


@dataclass
class WorkerPlan:
    """Description of one stress run."""

    thread_count: int
    tests_per_thread: int
    work: Callable[[int, int], object]
    on_worker_done: Callable[[int], object] | None = None
    name: str = "work"

    def __post_init__(self) -> None:
        if self.thread_count < 1:
            raise ValueError("thread_count must be >= 1")
        if self.tests_per_thread < 1:
            raise ValueError("tests_per_thread must be >= 1")

    @classmethod
    def for_work(
        cls,
        thread_count: int,
        tests_per_thread: int,
        work: Work,
        on_worker_done: Callable[[int], object] | None = None,
    ) -> "WorkerPlan":
        """Build a plan from a TestRunnable or a plain callable."""
        if isinstance(work, TestRunnable):
            return cls(
                thread_count=thread_count,
                tests_per_thread=tests_per_thread,
                work=work.run,
                on_worker_done=on_worker_done or work.do_end,
                name=_qualified_name(work),
            )

        if not callable(work):
            raise TypeError(f"work must be callable or a TestRunnable, got {type(work).__name__}")

        return cls(
            thread_count=thread_count,
            tests_per_thread=tests_per_thread,
            work=work,
            on_worker_done=on_worker_done,
            name=_qualified_name(work),
        )


@dataclass
class ExecutionOutcome:
    """Aggregated result of a stress run.

    Attributes:
        planned: Iterations each worker should have run.
        completed: Completed iterations per worker.
        failure: First exception raised by any worker, if any.
        failed_worker: Worker that raised ``failure``.
        failed_iteration: Iteration that raised ``failure``; ``None`` if it
            came from the end-of-worker hook.
    """

    planned: int
    completed: np.ndarray
    failure: BaseException | None = None
    failed_worker: int | None = None
    failed_iteration: int | None = None
    discarded_failures: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def for_plan(cls, plan: WorkerPlan) -> "ExecutionOutcome":
        return cls(
            planned=plan.tests_per_thread,
            completed=np.zeros(plan.thread_count, dtype=np.int64),
        )

    @property
    def failed(self) -> bool:
        return self.failure is not None

    @property
    def total_completed(self) -> int:
        return int(self.completed.sum())

    def record_iteration(self, worker: int) -> None:
        with self._lock:
            self.completed[worker] += 1

    def record_failure(
        self,
        error: BaseException,
        worker: int,
        iteration: int | None,
    ) -> bool:
        """Store ``error`` unless another failure was stored first.

        Returns:
            True if this failure is the one that will be reported.
        """
        with self._lock:
            if self.failure is not None:
                self.discarded_failures += 1
                return False

            self.failure = error
            self.failed_worker = worker
            self.failed_iteration = iteration
            return True

    def incomplete_workers(self) -> list[int]:
        """Workers whose completed count differs from the plan."""
        return np.flatnonzero(self.completed != self.planned).tolist()

    def raise_for_status(self) -> None:
        """Replay the captured failure or report a silently stopped worker."""
        if self.failure is not None:
            raise WorkerFailureError(
                self.failure,
                worker=self.failed_worker,
                iteration=self.failed_iteration,
            ) from self.failure

        incomplete = self.incomplete_workers()
        if incomplete:
            worker = incomplete[0]
            raise IncompleteExecutionError(
                worker,
                expected=self.planned,
                actual=int(self.completed[worker]),
            )


class ThreadTestHarness:
    """Run a workload on many threads and report one verdict.

    Each of ``thread_count`` threads runs the workload
    ``tests_per_thread`` times. Workers check a shared failure flag before
    every iteration and stop once any worker failed; a worker may still
    finish the iteration it already started. The calling thread joins all
    workers, then replays the first failure as a WorkerFailureError or, if
    none occurred, verifies that every worker ran every iteration.

    Example:
        harness = ThreadTestHarness(2, 2)
        count = itertools.count()

        harness.execute(lambda worker, iteration: next(count))

    A harness instance can run several workloads one after the other; each
    call to ``execute`` gets its own ExecutionOutcome.
    """

    def __init__(self, thread_count: int, tests_per_thread: int):
        """Initialize the harness.

        Args:
            thread_count: Number of threads started in parallel.
            tests_per_thread: Iterations executed by each thread.
        """
        if thread_count < 1:
            raise ValueError("thread_count must be >= 1")
        if tests_per_thread < 1:
            raise ValueError("tests_per_thread must be >= 1")

        self.thread_count = thread_count
        self.tests_per_thread = tests_per_thread
        self.last_outcome: ExecutionOutcome | None = None

    def execute(
        self,
        work: Work,
        on_worker_done: Callable[[int], object] | None = None,
    ) -> ExecutionOutcome:
        """Run ``work`` on all threads and wait for them.

        Args:
            work: ``work(worker, iteration)`` or a TestRunnable.
            on_worker_done: Optional ``on_worker_done(worker)`` hook, called
                by each thread after its iterations. Overrides
                ``TestRunnable.do_end`` when both are given.

        Returns:
            The outcome of the run.

        Raises:
            WorkerFailureError: A worker raised; the original exception is
                the ``__cause__``.
            IncompleteExecutionError: A worker stopped early without error.
        """
        plan = WorkerPlan.for_work(
            self.thread_count,
            self.tests_per_thread,
            work,
            on_worker_done,
        )
        return self.run(plan)

    def run(self, plan: WorkerPlan) -> ExecutionOutcome:
        """Execute a prepared WorkerPlan (see ``execute``)."""
        outcome = ExecutionOutcome.for_plan(plan)
        failed = threading.Event()

        logger.info(
            f"Starting thread test: {plan.thread_count} threads x "
            f"{plan.tests_per_thread} iterations of {plan.name}"
        )

        threads = []
        try:
            for worker in range(plan.thread_count):
                logger.debug(f"Starting thread number: {worker}")
                thread = threading.Thread(
                    target=self._worker,
                    args=(plan, outcome, failed, worker),
                    name=f"{THREAD_NAME_PREFIX} {worker}: {plan.name}",
                )
                thread.start()
                threads.append(thread)
        except BaseException as e:
            logger.warning(f"Could not start all threads, stopping {len(threads)} started: {e!r}")
            failed.set()
            for thread in threads:
                thread.join()
            raise

        for thread in threads:
            thread.join()

        self.last_outcome = outcome

        if outcome.discarded_failures:
            logger.info(f"{outcome.discarded_failures} later failure(s) were discarded")

        outcome.raise_for_status()
        return outcome

    def _worker(
        self,
        plan: WorkerPlan,
        outcome: ExecutionOutcome,
        failed: threading.Event,
        worker: int,
    ) -> None:
        iteration = None
        try:
            for iteration in range(plan.tests_per_thread):
                if failed.is_set():
                    break

                plan.work(worker, iteration)
                outcome.record_iteration(worker)

            # the hook is not part of a finally block, a failing iteration
            # already ends this worker
            iteration = None
            if plan.on_worker_done is not None:
                plan.on_worker_done(worker)

        except BaseException as e:
            # BaseException: pytest.fail() and friends do not derive from Exception
            if outcome.record_failure(e, worker, iteration):
                logger.debug(f"Thread {worker} failed in iteration {iteration}: {e!r}")
            else:
                logger.debug(f"Discarding failure of thread {worker}, another thread failed first: {e!r}")
            failed.set()


def _qualified_name(work: object) -> str:
    if isinstance(work, TestRunnable):
        cls = type(work)
        return f"{cls.__module__}.{cls.__qualname__}"

    name = getattr(work, "__qualname__", None) or type(work).__qualname__
    module = getattr(work, "__module__", None)
    return f"{module}.{name}" if module else name
