"""
probekit Errors - Domain-specific error types.

Error hierarchy:
    ProbeError (base)
    ├── ResourceExhaustedError
    ├── WorkerFailureError
    ├── IncompleteExecutionError (AssertionError)
    ├── LeakDetectedError (AssertionError)
    ├── HeapDumpError
    └── ThreadLeftError (AssertionError)

Failures that describe a broken property of the code under test also
derive from AssertionError so pytest reports them as test failures
rather than errors.
"""

from __future__ import annotations

from typing import Any


class ProbeError(Exception):
    """Base error for all probekit errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ResourceExhaustedError(ProbeError):
    """
    Raised when no free port is left in the configured range.

    The message always names both range boundaries.
    """

    def __init__(self, start: int, end: int):
        super().__init__(
            f"No free port found in the range of [{start} - {end}]",
            details={"start": start, "end": end},
        )
        self.start = start
        self.end = end


class WorkerFailureError(ProbeError):
    """
    Raised after all workers joined when one of them failed.

    The original exception is available as ``__cause__`` and ``cause``.
    """

    def __init__(self, cause: BaseException, worker: int, iteration: int | None):
        super().__init__(
            "Caught an exception in one of the threads",
            details={"worker": worker, "iteration": iteration},
        )
        self.cause = cause
        self.worker = worker
        self.iteration = iteration


class IncompleteExecutionError(ProbeError, AssertionError):
    """
    Raised when a worker finished without error but did not run every
    planned iteration.
    """

    def __init__(self, worker: int, expected: int, actual: int):
        super().__init__(
            f"Thread {worker} did not execute all iterations: "
            f"expected {expected}, but had {actual}",
            details={"worker": worker, "expected": expected, "actual": actual},
        )
        self.worker = worker
        self.expected = expected
        self.actual = actual


class LeakDetectedError(ProbeError, AssertionError):
    """Raised when a tracked object survived every collection attempt."""

    def __init__(
        self,
        message: str,
        label: str | None = None,
        attempts: int = 0,
        heap_dump_path: str | None = None,
    ):
        super().__init__(
            message,
            details={
                "label": label,
                "attempts": attempts,
                "heap_dump_path": heap_dump_path,
            },
        )
        self.label = label
        self.attempts = attempts
        self.heap_dump_path = heap_dump_path


class HeapDumpError(ProbeError):
    """Raised when a heap snapshot could not be written."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Could not write heap snapshot to {path}: {reason}",
            details={"path": path},
        )
        self.path = path


class ThreadLeftError(ProbeError, AssertionError):
    """Raised when a thread matching a name pattern is still running."""

    def __init__(self, message: str, thread_name: str):
        super().__init__(message, details={"thread_name": thread_name})
        self.thread_name = thread_name
