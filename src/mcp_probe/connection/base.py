"""Ports: process launching and capability probing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from mcp_probe.models import ServerDefinition, TestResult

if TYPE_CHECKING:
    from mcp_probe.config.settings import ProbeSettings
    from mcp_probe.connection.launcher import LaunchedProcess


class LauncherPort(Protocol):
    """Port for starting server processes."""

    async def launch(self, definition: ServerDefinition) -> LaunchedProcess:
        """Spawn the server; raise SpawnError if it cannot be started."""
        ...


class CapabilityProbePort(Protocol):
    """Port for probing one MCP server end to end."""

    async def run(
        self,
        definition: ServerDefinition,
        *,
        settings: ProbeSettings | None = None,
    ) -> TestResult:
        """Spawn, handshake, enumerate capabilities, tear down. Never raises."""
        ...
