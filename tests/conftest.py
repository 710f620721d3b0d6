"""
Shared fixtures for probekit tests.
"""

from __future__ import annotations

import urllib.request

import pytest

from probekit.config import ProbeConfig, set_config

pytest_plugins = ["probekit.testing.plugin"]


@pytest.fixture(autouse=True)
def reset_config():
    """Drop any process-wide config a test installed."""
    yield
    set_config(None)


@pytest.fixture
def fast_config() -> ProbeConfig:
    """Config with short collection pauses and no heap snapshots."""
    return ProbeConfig(gc_pause_ms=10, heap_dump=False)


@pytest.fixture
def fetch():
    """GET/POST helper that bypasses any configured HTTP proxy."""
    opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))

    def _fetch(url: str, data: bytes | None = None, timeout: float = 10) -> tuple[int, str, str]:
        with opener.open(url, data=data, timeout=timeout) as response:
            body = response.read().decode("utf-8")
            return response.status, response.headers.get("Content-Type"), body

    return _fetch
