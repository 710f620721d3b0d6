"""
probekit configuration.

Defines the tunables shared by the stress harness, the leak verifier and
the mock HTTP server. Every value can be overridden through a
``PROBEKIT_*`` environment variable.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields


@dataclass
class ProbeConfig:
    """Configuration for probekit components.

    Args:
        port_range_start: First port tried by the mock HTTP server.
        port_range_end: End of the port range (exclusive).
        bind_host: Interface the mock HTTP server listens on.
        max_gc_attempts: Collection cycles before a leak is reported.
        gc_pause_ms: Pause between two collection attempts.
        heap_dump: Write a heap snapshot when a leak is detected.
        heap_dump_file: File name of the heap snapshot, relative to the
            current working directory.
        reserved_thread_prefix: Threads whose name starts with this prefix
            belong to the test runner and are ignored by substring scans.
        server_join_timeout: Seconds to wait for server threads on close.

    Example:
        config = ProbeConfig(port_range_start=20000, port_range_end=20010)
        server = MockHTTPServer.fixed(200, "text/plain", "OK", config=config)
    """

    port_range_start: int = 15100
    """First candidate port for the mock HTTP server."""

    port_range_end: int = 15110
    """Exclusive end of the candidate port range (ten ports by default)."""

    bind_host: str = "127.0.0.1"

    max_gc_attempts: int = 50
    """Number of gc.collect() calls before a surviving object is a leak."""

    gc_pause_ms: int = 100

    heap_dump: bool = True
    heap_dump_file: str = "MemoryLeakVerifier.heap.json"

    reserved_thread_prefix: str = "SUITE-"

    server_join_timeout: float = 5.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 0 < self.port_range_start < 65536:
            raise ValueError("port_range_start must be a valid port number")
        if not self.port_range_start < self.port_range_end <= 65536:
            raise ValueError("port_range_end must be > port_range_start and <= 65536")
        if self.max_gc_attempts < 1:
            raise ValueError("max_gc_attempts must be >= 1")
        if self.gc_pause_ms < 0:
            raise ValueError("gc_pause_ms must be >= 0")
        if self.server_join_timeout <= 0:
            raise ValueError("server_join_timeout must be > 0")

    @property
    def port_range(self) -> range:
        """Candidate ports, end exclusive."""
        return range(self.port_range_start, self.port_range_end)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "ProbeConfig":
        """Build a config from ``PROBEKIT_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        values = {}

        for f in fields(cls):
            raw = environ.get(f"PROBEKIT_{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = _parse(f.type, raw)

        return cls(**values)


def _parse(type_name: str, raw: str):
    if type_name == "bool":
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if type_name == "int":
        return int(raw)
    if type_name == "float":
        return float(raw)
    return raw


_config: ProbeConfig | None = None


def get_config() -> ProbeConfig:
    """Get the process-wide configuration, loading it from the environment on first use."""
    global _config

    if _config is None:
        _config = ProbeConfig.from_env()

    return _config


def set_config(config: ProbeConfig | None) -> None:
    """Replace the process-wide configuration (``None`` reloads from the environment)."""
    global _config
    _config = config
