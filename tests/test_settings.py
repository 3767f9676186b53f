"""Tests for probe settings (config/settings.py)."""

from __future__ import annotations

from pathlib import Path

import pytest

from mcp_probe.config.settings import (
    DEFAULT_KILL_GRACE,
    DEFAULT_REQUEST_TIMEOUT,
    ProbeSettings,
    clamp_timeout,
)
from mcp_probe.errors import ConfigReadError


class TestFromEnv:
    def test_defaults(self):
        settings = ProbeSettings.from_env({})

        assert settings.request_timeout == DEFAULT_REQUEST_TIMEOUT
        assert settings.initialize_timeout is None
        assert settings.handshake_timeout == DEFAULT_REQUEST_TIMEOUT
        assert settings.kill_grace == DEFAULT_KILL_GRACE
        assert settings.definitions_path == Path.home() / ".claude.json"

    def test_overrides(self):
        settings = ProbeSettings.from_env(
            {
                "MCP_PROBE_REQUEST_TIMEOUT": "4",
                "MCP_PROBE_INITIALIZE_TIMEOUT": "20.5",
                "MCP_PROBE_KILL_GRACE": "0.5",
                "MCP_PROBE_CONFIG": "/tmp/servers.json",
            }
        )

        assert settings.request_timeout == 4.0
        assert settings.handshake_timeout == 20.5
        assert settings.kill_grace == 0.5
        assert settings.definitions_path == Path("/tmp/servers.json")

    def test_blank_values_fall_back(self):
        settings = ProbeSettings.from_env({"MCP_PROBE_REQUEST_TIMEOUT": "  "})

        assert settings.request_timeout == DEFAULT_REQUEST_TIMEOUT

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("MCP_PROBE_REQUEST_TIMEOUT", "7")

        assert ProbeSettings.from_env().request_timeout == 7.0

    @pytest.mark.parametrize("raw", ["ten", "0", "-3"])
    def test_invalid_values_raise(self, raw):
        with pytest.raises(ConfigReadError, match="MCP_PROBE_REQUEST_TIMEOUT"):
            ProbeSettings.from_env({"MCP_PROBE_REQUEST_TIMEOUT": raw})


class TestWithTimeout:
    def test_zero_keeps_settings(self):
        settings = ProbeSettings(request_timeout=8.0)

        assert settings.with_timeout(0) is settings

    def test_override_sets_both_timeouts(self):
        settings = ProbeSettings(request_timeout=8.0).with_timeout(15)

        assert settings.request_timeout == 15.0
        assert settings.handshake_timeout == 15.0

    @pytest.mark.parametrize(("given", "expected"), [(0.1, 1.0), (30, 30.0), (500, 60.0)])
    def test_clamped(self, given, expected):
        assert clamp_timeout(given) == expected
