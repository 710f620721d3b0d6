"""
probekit.memory - Garbage-collection leak verification.

Components:
    MemoryLeakVerifier  - Register objects, assert they are collected
    TrackedReference    - Weak reference plus label
    dump_heap           - JSON heap snapshot for leak diagnostics

Usage:
    from probekit.memory import MemoryLeakVerifier

    verifier = MemoryLeakVerifier()
    verifier.register(connection, label="connection")
    del connection
    verifier.assert_all_collected()
"""

from probekit.memory.verifier import (
    MemoryLeakVerifier,
    TrackedReference,
)
from probekit.memory.heap import dump_heap

__all__ = [
    "MemoryLeakVerifier",
    "TrackedReference",
    "dump_heap",
]
