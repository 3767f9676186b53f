"""Shared test fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from mcp_probe.models import ServerDefinition

ECHO_SERVER = Path(__file__).parent / "fixtures" / "echo_server.py"


@pytest.fixture
def echo_server() -> Callable[..., ServerDefinition]:
    """Build a ServerDefinition that runs the scriptable fixture server in a given mode."""

    def _make(mode: str = "echo", env: dict[str, str] | None = None) -> ServerDefinition:
        return ServerDefinition(
            command=sys.executable,
            args=["-u", str(ECHO_SERVER), mode],
            env=env or {},
        )

    return _make
