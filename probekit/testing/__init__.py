"""
probekit.testing - pytest integration.

Components:
    MemoryVerifierBase  - Test base class asserting collection at teardown
    plugin              - Fixtures: leak_verifier, mock_http_server, thread_harness

Usage:
    # conftest.py
    pytest_plugins = ["probekit.testing.plugin"]
"""

from probekit.testing.base import MemoryVerifierBase

__all__ = [
    "MemoryVerifierBase",
]
