"""
Base class for tests which check for memory leaks at the end of each test.
"""

from __future__ import annotations

from probekit.memory import MemoryLeakVerifier


class MemoryVerifierBase:
    """Mixin for pytest test classes.

    Register any object that must not outlive the test:

        class TestConnections(MemoryVerifierBase):
            def test_close(self):
                conn = connect()
                conn.close()
                self.verifier.register(conn, label="conn")

    ``teardown_method`` asserts that everything registered was collected.
    The verifier is shared by the class, as pytest creates a new instance
    per test.
    """

    verifier: MemoryLeakVerifier

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.verifier = MemoryLeakVerifier()

    def teardown_method(self, method=None):
        self.verifier.assert_all_collected()
