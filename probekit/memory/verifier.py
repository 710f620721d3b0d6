"""
Memory Leak Verifier - prove that objects become garbage.

Usage:
    verifier = MemoryLeakVerifier()

    def teardown_method(self):
        verifier.assert_all_collected()

    def test_something(self):
        session = open_session()
        ...
        verifier.register(session, label="session")

At teardown the verifier runs the collector until every registered object
is gone, or reports a leak after a bounded number of attempts. By default
a heap snapshot is written to ``MemoryLeakVerifier.heap.json`` in the
current directory when that happens; disable it with
``set_heap_dump(False)``.
"""

from __future__ import annotations

import gc
import logging
import threading
import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from probekit.config import ProbeConfig, get_config
from probekit.errors import HeapDumpError, LeakDetectedError
from probekit.memory.heap import dump_heap

logger = logging.getLogger(__name__)


@dataclass
class TrackedReference:
    """A weak reference to an object under leak observation."""

    ref: weakref.ref
    label: str | None = None

    @classmethod
    def of(cls, obj: Any, label: str | None = None) -> "TrackedReference":
        try:
            ref = weakref.ref(obj)
        except TypeError:
            raise TypeError(
                f"cannot track object of type {type(obj).__name__}: "
                f"it does not support weak references"
            ) from None
        return cls(ref=ref, label=label)

    @property
    def alive(self) -> bool:
        return self.ref() is not None

    @property
    def name(self) -> str:
        return repr(self.label) if self.label else "Object"


class MemoryLeakVerifier:
    """Verify that registered objects are garbage collected.

    Collection may need more than one pass (finalizers, reference cycles
    that are only found by a later generation sweep), so the verifier
    retries with a short pause between attempts and gives up after
    ``max_gc_attempts`` collections.
    """

    def __init__(
        self,
        heap_dump: bool | None = None,
        config: ProbeConfig | None = None,
    ):
        """Initialize the verifier.

        Args:
            heap_dump: Write a heap snapshot when a leak is found
                (default from config, enabled).
            config: Configuration, defaults to the process-wide config.
        """
        self._config = config or get_config()
        self.heap_dump = self._config.heap_dump if heap_dump is None else heap_dump

        self._references: list[TrackedReference] = []
        self._interrupted = threading.Event()

    @property
    def references(self) -> list[TrackedReference]:
        return list(self._references)

    @property
    def heap_dump_path(self) -> Path:
        return Path.cwd() / self._config.heap_dump_file

    def set_heap_dump(self, enabled: bool) -> None:
        self.heap_dump = enabled

    def register(self, obj: Any, label: str | None = None) -> None:
        """Track ``obj`` without keeping it alive.

        Raises:
            TypeError: If the object does not support weak references
                (instances of ``object``, ``list``, ``dict``, ``int``...).
        """
        self._references.append(TrackedReference.of(obj, label))

    def interrupt(self) -> None:
        """Abort a running ``assert_all_collected`` at its next pause."""
        self._interrupted.set()

    def assert_all_collected(self, max_attempts: int | None = None) -> None:
        """Assert that every registered object has been collected.

        Attempts a full collection, re-checks the reference and pauses
        between attempts. The list of tracked objects is cleared
        afterwards, whatever the result.

        Args:
            max_attempts: Collections per object before reporting a leak
                (default: ``max_gc_attempts`` from config, 50).

        Raises:
            ValueError: ``max_attempts`` is less than 1.
            LeakDetectedError: An object survived all attempts.
            HeapDumpError: The heap snapshot could not be written.
        """
        attempts = self._config.max_gc_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        self._interrupted.clear()

        try:
            for tracked in self._references:
                if not self._wait_collected(tracked, attempts):
                    logger.info(
                        f"Leak check interrupted, {len(self._references)} "
                        f"object(s) were not verified"
                    )
                    return
        finally:
            self._references.clear()

    def _wait_collected(self, tracked: TrackedReference, attempts: int) -> bool:
        """Returns False if interrupted, raises if the object leaked."""
        # exit early if the object was already collected before
        if not tracked.alive:
            return True

        pause = self._config.gc_pause_ms / 1000
        for attempt in range(attempts):
            gc.collect()
            if not tracked.alive:
                logger.debug(f"{tracked.name} collected after {attempt + 1} collection(s)")
                return True

            if self._interrupted.wait(pause):
                return False

        self._report_leak(tracked, attempts)
        return True

    def _report_leak(self, tracked: TrackedReference, attempts: int) -> None:
        obj = tracked.ref()
        if obj is None:
            # collected between the last check and now
            return

        dump_path = None
        if self.heap_dump:
            dump_path = self.heap_dump_path
            try:
                dump_heap(dump_path, live=True, suspect=obj)
            except OSError as e:
                raise HeapDumpError(str(dump_path), str(e)) from e

        message = (
            f"{tracked.name} should not exist after {attempts} collections, "
            f"but still had: {obj!r}"
        )
        if dump_path is not None:
            message += f", a heap snapshot was written to {dump_path}"

        del obj
        logger.warning(message)

        raise LeakDetectedError(
            message,
            label=tracked.label,
            attempts=attempts,
            heap_dump_path=str(dump_path) if dump_path else None,
        )
