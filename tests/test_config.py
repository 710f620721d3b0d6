"""
Tests for probekit configuration.
"""

import pytest

from probekit.config import ProbeConfig, get_config, set_config


class TestProbeConfig:
    """Tests for ProbeConfig."""

    def test_defaults(self):
        config = ProbeConfig()

        assert config.port_range_start == 15100
        assert config.port_range_end == 15110
        assert len(config.port_range) == 10
        assert config.port_range[-1] == 15109
        assert config.max_gc_attempts == 50
        assert config.gc_pause_ms == 100
        assert config.heap_dump is True
        assert config.reserved_thread_prefix == "SUITE-"

    def test_validation(self):
        with pytest.raises(ValueError):
            ProbeConfig(port_range_start=0)
        with pytest.raises(ValueError):
            ProbeConfig(port_range_start=15100, port_range_end=15100)
        with pytest.raises(ValueError):
            ProbeConfig(max_gc_attempts=0)
        with pytest.raises(ValueError):
            ProbeConfig(gc_pause_ms=-1)
        with pytest.raises(ValueError):
            ProbeConfig(server_join_timeout=0)


class TestFromEnv:
    """Tests for loading PROBEKIT_* environment variables."""

    def test_empty_environment(self):
        assert ProbeConfig.from_env({}) == ProbeConfig()

    def test_parse_values(self):
        config = ProbeConfig.from_env({
            "PROBEKIT_PORT_RANGE_START": "20000",
            "PROBEKIT_PORT_RANGE_END": "20005",
            "PROBEKIT_HEAP_DUMP": "false",
            "PROBEKIT_SERVER_JOIN_TIMEOUT": "1.5",
            "PROBEKIT_BIND_HOST": "0.0.0.0",
            "UNRELATED": "ignored",
        })

        assert config.port_range == range(20000, 20005)
        assert config.heap_dump is False
        assert config.server_join_timeout == 1.5
        assert config.bind_host == "0.0.0.0"

    def test_bool_values(self):
        for raw in ("1", "true", "YES", "on"):
            assert ProbeConfig.from_env({"PROBEKIT_HEAP_DUMP": raw}).heap_dump is True

    def test_invalid_value(self):
        with pytest.raises(ValueError):
            ProbeConfig.from_env({"PROBEKIT_MAX_GC_ATTEMPTS": "many"})

    def test_os_environ(self, monkeypatch):
        monkeypatch.setenv("PROBEKIT_GC_PAUSE_MS", "5")

        assert ProbeConfig.from_env().gc_pause_ms == 5


class TestGlobalConfig:
    """Tests for get_config and set_config."""

    def test_set_and_get(self):
        config = ProbeConfig(max_gc_attempts=3)
        set_config(config)

        assert get_config() is config

    def test_reload_from_environment(self, monkeypatch):
        set_config(ProbeConfig(max_gc_attempts=3))
        monkeypatch.setenv("PROBEKIT_MAX_GC_ATTEMPTS", "7")

        set_config(None)

        assert get_config().max_gc_attempts == 7

    def test_cached(self):
        assert get_config() is get_config()
