"""
probekit.threads - Concurrent stress harness.

Components:
    ThreadTestHarness       - N threads x M iterations, one verdict
    TestRunnable            - Workload interface with an end-of-thread hook
    run_with_barrier        - Parallel runs released by a shared barrier
    wait_for_thread_to_finish / wait_for_threads_containing
                            - Let background threads quiesce
    assert_no_thread_left   - Fail when a named thread lingers
    ThreadDump              - Stacks of all live threads

Usage:
    from probekit.threads import ThreadTestHarness, run_with_barrier

    ThreadTestHarness(10, 100).execute(lambda worker, iteration: work())
    results = run_with_barrier(lambda: cache.get("key"), runs=23)
"""

from probekit.threads.harness import (
    ThreadTestHarness,
    TestRunnable,
    WorkerPlan,
    ExecutionOutcome,
    THREAD_NAME_PREFIX,
)
from probekit.threads.barrier import (
    run_with_barrier,
    POOL_THREAD_PREFIX,
)
from probekit.threads.registry import (
    wait_for_thread_to_finish,
    wait_for_threads_containing,
    assert_no_thread_left,
    matching_threads,
)
from probekit.threads.dump import (
    ThreadDump,
    ThreadInfo,
)

__all__ = [
    # Harness
    "ThreadTestHarness",
    "TestRunnable",
    "WorkerPlan",
    "ExecutionOutcome",
    "THREAD_NAME_PREFIX",
    # Barrier
    "run_with_barrier",
    "POOL_THREAD_PREFIX",
    # Registry
    "wait_for_thread_to_finish",
    "wait_for_threads_containing",
    "assert_no_thread_left",
    "matching_threads",
    # Dump
    "ThreadDump",
    "ThreadInfo",
]
