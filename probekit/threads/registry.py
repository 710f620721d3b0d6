"""
Thread registry helpers - wait for or assert the absence of named threads.

Background work in tests (a mock server's dispatch loop, a pool that was
shut down without waiting) can outlive the test that started it. These
helpers let a test wait until such threads are gone and fail when one
lingers.
"""

from __future__ import annotations

import logging
import threading
import time

from probekit.config import get_config
from probekit.errors import ThreadLeftError
from probekit.threads.dump import ThreadDump

logger = logging.getLogger(__name__)


def wait_for_thread_to_finish(name: str, timeout_ms: int = 0) -> None:
    """Wait for all threads with exactly this name to finish.

    Args:
        name: The exact thread name.
        timeout_ms: Total time to wait; 0 waits forever. When the time is
            up the function returns without error.
    """
    _join_all(
        [t for t in threading.enumerate() if t.name == name],
        timeout_ms,
    )


def wait_for_threads_containing(
    contains: str,
    timeout_ms: int = 0,
    reserved_prefix: str | None = None,
) -> None:
    """Wait for threads whose name contains ``contains`` to finish.

    Threads whose name starts with the reserved test-runner prefix
    (``SUITE-`` by default) are ignored.

    Args:
        contains: Substring matched against thread names.
        timeout_ms: Total time to wait; 0 waits forever. When the time is
            up the function returns without error.
        reserved_prefix: Override the configured reserved prefix.
    """
    _join_all(matching_threads(contains, reserved_prefix), timeout_ms)


def assert_no_thread_left(
    error: str,
    contains: str,
    reserved_prefix: str | None = None,
) -> None:
    """Fail if a thread whose name contains ``contains`` is still running.

    Usually combined with ``wait_for_threads_containing(contains, timeout_ms)``.

    Args:
        error: Message prefix of the failure.
        contains: Substring matched against thread names.
        reserved_prefix: Override the configured reserved prefix.

    Raises:
        ThreadLeftError: naming the first matching thread.
    """
    for thread in matching_threads(contains, reserved_prefix):
        logger.info(f"ThreadDump: {ThreadDump.capture()}")
        raise ThreadLeftError(f"{error}{thread}", thread_name=thread.name)


def matching_threads(contains: str, reserved_prefix: str | None = None) -> list[threading.Thread]:
    """Live threads (other than the caller) whose name contains ``contains``.

    Raises:
        ValueError: If ``contains`` is empty, it would match every thread.
    """
    if not contains:
        raise ValueError("contains must not be empty")

    if reserved_prefix is None:
        reserved_prefix = get_config().reserved_thread_prefix

    current = threading.current_thread()
    return [
        t for t in threading.enumerate()
        if t is not current
        and contains in t.name
        and not (reserved_prefix and t.name.startswith(reserved_prefix))
    ]


def _join_all(threads: list[threading.Thread], timeout_ms: int) -> None:
    current = threading.current_thread()
    deadline = time.monotonic() + timeout_ms / 1000 if timeout_ms > 0 else None

    for thread in threads:
        if thread is current:
            continue

        if deadline is None:
            thread.join()
            continue

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        thread.join(remaining)

    if deadline is not None:
        still_running = [t.name for t in threads if t.is_alive()]
        if still_running:
            logger.debug(f"Gave up waiting after {timeout_ms}ms for threads: {still_running}")
