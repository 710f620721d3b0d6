"""
probekit - Instruments for testing concurrency, lifecycle and network behavior.

Architecture:
    threads  → many workers, one verdict
    memory   → weak references, bounded collection retries
    http     → throwaway HTTP endpoint on a free port

Public API (stable):
    ThreadTestHarness   - Run work on N threads x M iterations, replay the first failure
    run_with_barrier    - Parallel runs of one task released at the same moment
    wait_for_threads_containing / assert_no_thread_left
                        - Let background threads quiesce, fail on stragglers
    MemoryLeakVerifier  - Register objects, assert they are garbage collected
    MockHTTPServer      - Fixed, hooked or computed HTTP responses
    ProbeConfig         - Port range, retry bounds, heap snapshot settings

Example:
    from probekit import ThreadTestHarness, MemoryLeakVerifier, MockHTTPServer

    ThreadTestHarness(10, 100).execute(lambda worker, iteration: cache.get(worker))

    verifier = MemoryLeakVerifier()
    verifier.register(session, label="session")
    del session
    verifier.assert_all_collected()

    with MockHTTPServer.fixed(200, "text/plain", "OK") as server:
        assert fetch(server.url) == "OK"
"""

from __future__ import annotations

import logging
import sys

from probekit.config import ProbeConfig, get_config, set_config
from probekit.errors import (
    ProbeError,
    ResourceExhaustedError,
    WorkerFailureError,
    IncompleteExecutionError,
    LeakDetectedError,
    HeapDumpError,
    ThreadLeftError,
)
from probekit.threads import (
    ThreadTestHarness,
    TestRunnable,
    run_with_barrier,
    wait_for_thread_to_finish,
    wait_for_threads_containing,
    assert_no_thread_left,
    ThreadDump,
)
from probekit.memory import MemoryLeakVerifier, dump_heap
from probekit.http import (
    MockHTTPServer,
    ResponderSpec,
    Response,
    RecordedRequest,
    THREAD_NAME_TOKEN,
)

__version__ = "1.0.0"


def configure_logging(
    level: int | str = logging.INFO,
    stream=None,
) -> logging.Logger:
    """Send probekit log records to ``stream`` (default: stderr).

    Args:
        level: Log level name or number.
        stream: Output stream.

    Returns:
        The ``probekit`` logger.
    """
    logger = logging.getLogger("probekit")
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    # replace the handler of an earlier call
    for handler in [h for h in logger.handlers if getattr(h, "_probekit", False)]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] [%(threadName)s] %(name)s: %(message)s"
    ))
    handler._probekit = True
    logger.addHandler(handler)

    return logger


__all__ = [
    # Config
    "ProbeConfig",
    "get_config",
    "set_config",
    "configure_logging",
    # Errors
    "ProbeError",
    "ResourceExhaustedError",
    "WorkerFailureError",
    "IncompleteExecutionError",
    "LeakDetectedError",
    "HeapDumpError",
    "ThreadLeftError",
    # Threads
    "ThreadTestHarness",
    "TestRunnable",
    "run_with_barrier",
    "wait_for_thread_to_finish",
    "wait_for_threads_containing",
    "assert_no_thread_left",
    "ThreadDump",
    # Memory
    "MemoryLeakVerifier",
    "dump_heap",
    # HTTP
    "MockHTTPServer",
    "ResponderSpec",
    "Response",
    "RecordedRequest",
    "THREAD_NAME_TOKEN",
]
