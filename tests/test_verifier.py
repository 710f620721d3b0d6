"""
Tests for the memory leak verifier.
"""

import json
import threading
import time

import pytest

from probekit.config import ProbeConfig
from probekit.errors import LeakDetectedError
from probekit.memory import MemoryLeakVerifier, TrackedReference
from probekit.testing import MemoryVerifierBase


class Payload:
    """Weakly referenceable test object."""

    def __init__(self, name="payload"):
        self.name = name
        self.other = None

    def __repr__(self):
        return f"Payload({self.name!r})"


class TestNoLeak:
    """Objects without outstanding references pass."""

    def test_no_memory_leak(self, fast_config):
        verifier = MemoryLeakVerifier(config=fast_config)
        verifier.register(Payload())
        verifier.register(Payload())

        verifier.assert_all_collected()

    def test_dropped_reference(self, fast_config):
        """Register, drop the local reference, assert: passes without exhausting attempts."""
        verifier = MemoryLeakVerifier(config=fast_config)
        obj = Payload()
        verifier.register(obj, label="obj")
        del obj

        start = time.monotonic()
        verifier.assert_all_collected(max_attempts=50)

        assert time.monotonic() - start < 0.5

    def test_reference_cycle(self, fast_config):
        """Objects kept alive only by a cycle are collected by gc.collect()."""
        verifier = MemoryLeakVerifier(config=fast_config)
        a, b = Payload("a"), Payload("b")
        a.other, b.other = b, a
        verifier.register(a, label="a")
        verifier.register(b, label="b")
        del a, b

        verifier.assert_all_collected()

    def test_many_objects(self, fast_config):
        verifier = MemoryLeakVerifier(config=fast_config)
        for _ in range(5000):
            verifier.register(Payload())

        verifier.assert_all_collected()

    def test_nothing_registered(self):
        MemoryLeakVerifier().assert_all_collected()


class TestLeak:
    """Objects still referenced are reported."""

    def test_with_memory_leak(self, fast_config):
        obj = Payload()
        verifier = MemoryLeakVerifier(config=fast_config)
        verifier.register(obj, label="obj")

        with pytest.raises(LeakDetectedError) as exc_info:
            verifier.assert_all_collected(3)

        message = str(exc_info.value)
        assert "'obj' should not exist after 3 collections" in message
        assert "Payload('payload')" in message
        assert exc_info.value.attempts == 3
        assert exc_info.value.label == "obj"
        assert exc_info.value.heap_dump_path is None
        assert isinstance(exc_info.value, AssertionError)

    def test_without_label(self, fast_config):
        obj = Payload()
        verifier = MemoryLeakVerifier(config=fast_config)
        verifier.register(obj)

        with pytest.raises(AssertionError, match="Object should not exist"):
            verifier.assert_all_collected(2)

    def test_default_attempts_from_config(self):
        obj = Payload()
        verifier = MemoryLeakVerifier(config=ProbeConfig(max_gc_attempts=2, gc_pause_ms=0, heap_dump=False))
        verifier.register(obj)

        with pytest.raises(LeakDetectedError) as exc_info:
            verifier.assert_all_collected()

        assert exc_info.value.attempts == 2

    def test_with_memory_leak_and_heap_dump(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        obj = Payload()

        verifier = MemoryLeakVerifier(config=ProbeConfig(gc_pause_ms=10))
        verifier.set_heap_dump(True)
        verifier.register(obj, label="obj")

        with pytest.raises(LeakDetectedError) as exc_info:
            verifier.assert_all_collected(3)

        dump_file = tmp_path / "MemoryLeakVerifier.heap.json"
        assert dump_file.exists(), f"Heap snapshot was not found at {dump_file}"
        assert "MemoryLeakVerifier.heap.json" in str(exc_info.value)

        snapshot = json.loads(dump_file.read_text())
        assert snapshot["suspect"]["type"] == "Payload"

    def test_heap_dump_overwritten(self, tmp_path, monkeypatch):
        """A second leak with heap dumps enabled overwrites the first snapshot."""
        monkeypatch.chdir(tmp_path)
        obj = Payload()
        verifier = MemoryLeakVerifier(heap_dump=True, config=ProbeConfig(gc_pause_ms=0))

        dump_file = tmp_path / "MemoryLeakVerifier.heap.json"
        timestamps = []
        for _ in range(2):
            verifier.register(obj, label="obj")
            with pytest.raises(LeakDetectedError):
                verifier.assert_all_collected(1)
            timestamps.append(json.loads(dump_file.read_text())["timestamp"])
            time.sleep(0.01)

        assert timestamps[1] > timestamps[0]

    def test_invalid_attempts(self, fast_config):
        """An explicit attempt count below 1 is rejected, not replaced by the default."""
        obj = Payload()
        verifier = MemoryLeakVerifier(config=fast_config)
        verifier.register(obj, label="obj")

        with pytest.raises(ValueError, match="max_attempts"):
            verifier.assert_all_collected(0)
        with pytest.raises(ValueError):
            verifier.assert_all_collected(-1)

        # the registration survives the rejected call
        assert len(verifier.references) == 1

    def test_session_reset_after_assert(self, fast_config):
        """Registered objects are forgotten once the assertion ran."""
        obj = Payload()
        verifier = MemoryLeakVerifier(config=fast_config)
        verifier.register(obj)

        with pytest.raises(LeakDetectedError):
            verifier.assert_all_collected(1)

        assert verifier.references == []
        verifier.assert_all_collected(1)

    def test_interrupt_aborts_without_failure(self):
        """An interrupt ends the wait early; the check neither passes nor fails."""
        obj = Payload()
        verifier = MemoryLeakVerifier(config=ProbeConfig(gc_pause_ms=1000, heap_dump=False))
        verifier.register(obj)

        timer = threading.Timer(0.1, verifier.interrupt)
        timer.start()
        start = time.monotonic()

        verifier.assert_all_collected(50)

        assert time.monotonic() - start < 5
        assert verifier.references == []
        timer.join()


class TestRegister:
    """Tests for registration."""

    def test_not_weakly_referenceable(self):
        verifier = MemoryLeakVerifier()

        with pytest.raises(TypeError, match="does not support weak references"):
            verifier.register(object())
        with pytest.raises(TypeError):
            verifier.register([1, 2, 3])

    def test_does_not_keep_alive(self):
        tracked = TrackedReference.of(Payload(), label="temp")

        assert not tracked.alive
        assert tracked.label == "temp"

    def test_references_in_order(self):
        a, b = Payload("a"), Payload("b")
        verifier = MemoryLeakVerifier()
        verifier.register(a, "a")
        verifier.register(b, "b")

        assert [r.label for r in verifier.references] == ["a", "b"]


class TestMemoryVerifierBase:
    """Tests for the MemoryVerifierBase test mixin."""

    def test_base(self):
        class Verified(MemoryVerifierBase):
            pass

        # should not cause an error if nothing was registered
        Verified().teardown_method()

    def test_failure(self, fast_config):
        class Failing(MemoryVerifierBase):
            pass

        Failing.verifier = MemoryLeakVerifier(config=fast_config)

        # an object that is still referenced when the teardown runs
        obj = Payload()
        Failing.verifier.register(obj)

        with pytest.raises(AssertionError):
            Failing().teardown_method()

    def test_verifier_per_class(self):
        class First(MemoryVerifierBase):
            pass

        class Second(MemoryVerifierBase):
            pass

        assert First.verifier is not Second.verifier
