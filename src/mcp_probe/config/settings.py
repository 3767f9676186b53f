"""Probe settings resolved from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from mcp_probe.errors import ConfigReadError

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_KILL_GRACE = 2.0

# Bounds for per-call overrides coming from tools and the CLI
MIN_TIMEOUT_SECONDS = 1.0
MAX_TIMEOUT_SECONDS = 60.0


def default_config_path() -> Path:
    return Path.home() / ".claude.json"


@dataclass(frozen=True, slots=True)
class ProbeSettings:
    """Timeouts and file locations used by a probe run.

    ``initialize_timeout`` is kept apart from ``request_timeout`` so slow
    starting servers can get a longer handshake window without stretching
    every enumeration call. ``None`` means "same as request_timeout".
    """

    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    initialize_timeout: float | None = None
    kill_grace: float = DEFAULT_KILL_GRACE
    config_path: Path | None = None

    @property
    def handshake_timeout(self) -> float:
        if self.initialize_timeout is None:
            return self.request_timeout
        return self.initialize_timeout

    @property
    def definitions_path(self) -> Path:
        return self.config_path or default_config_path()

    def with_timeout(self, timeout_seconds: float) -> ProbeSettings:
        """Return a copy with both timeouts overridden (clamped), or self for 0."""
        if not timeout_seconds:
            return self
        timeout = clamp_timeout(timeout_seconds)
        return replace(self, request_timeout=timeout, initialize_timeout=timeout)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ProbeSettings:
        env = os.environ if environ is None else environ
        request_timeout = _positive_float(
            env, "MCP_PROBE_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT
        )
        initialize_timeout = None
        if env.get("MCP_PROBE_INITIALIZE_TIMEOUT", "").strip():
            initialize_timeout = _positive_float(
                env, "MCP_PROBE_INITIALIZE_TIMEOUT", request_timeout
            )
        config_path = env.get("MCP_PROBE_CONFIG", "").strip()
        return cls(
            request_timeout=request_timeout,
            initialize_timeout=initialize_timeout,
            kill_grace=_positive_float(env, "MCP_PROBE_KILL_GRACE", DEFAULT_KILL_GRACE),
            config_path=Path(config_path).expanduser() if config_path else None,
        )


def clamp_timeout(timeout_seconds: float) -> float:
    return max(MIN_TIMEOUT_SECONDS, min(float(timeout_seconds), MAX_TIMEOUT_SECONDS))


def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigReadError(f"{name} must be a number of seconds, got {raw!r}.") from exc
    if value <= 0:
        raise ConfigReadError(f"{name} must be greater than zero, got {raw!r}.")
    return value
