"""
Barrier runs - Execute the same task many times with a synchronized start.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

POOL_THREAD_PREFIX = "ThreadTestHarness-Pool"


def run_with_barrier(
    task: Callable[[], T],
    runs: int,
    *,
    timeout: float | None = None,
) -> list[T]:
    """Run ``task`` ``runs`` times in parallel, all released at the same moment.

    Every run waits on a shared barrier until all ``runs`` parties arrived,
    which maximizes contention on whatever ``task`` touches. The pool has
    one thread per run; a smaller pool could never fill the barrier.

    Args:
        task: Zero-argument callable to execute.
        runs: Number of parallel executions (>= 1).
        timeout: Seconds to wait for each result; ``None`` waits forever.

    Returns:
        Results of all runs, in submission order.

    Raises:
        Exception: The exception of the first failing run (in submission
            order), as raised by ``task``.
        concurrent.futures.TimeoutError: A result did not arrive in time.
    """
    if runs < 1:
        raise ValueError("runs must be >= 1")

    barrier = threading.Barrier(runs)

    def synchronized() -> T:
        barrier.wait()  # causes more contention
        return task()

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=runs,
        thread_name_prefix=POOL_THREAD_PREFIX,
    )
    wait_on_shutdown = True
    futures: list[concurrent.futures.Future[T]] = []

    try:
        futures = [executor.submit(synchronized) for _ in range(runs)]
        return [future.result(timeout=timeout) for future in futures]

    except concurrent.futures.TimeoutError:
        logger.warning(f"Barrier run of {runs} tasks timed out after {timeout}s")
        wait_on_shutdown = False
        _cancel(futures, barrier)
        raise

    except BaseException:
        _cancel(futures, barrier)
        raise

    finally:
        executor.shutdown(wait=wait_on_shutdown, cancel_futures=True)


def _cancel(futures: list[concurrent.futures.Future], barrier: threading.Barrier) -> None:
    """Cancel pending runs and release threads still waiting on the barrier."""
    cancelled = sum(1 for future in futures if future.cancel())
    barrier.abort()

    if cancelled:
        logger.debug(f"Cancelled {cancelled} pending barrier run(s)")
