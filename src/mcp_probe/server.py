"""MCP server that tests other MCP servers and reports their capabilities."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from mcp_probe.config.settings import ProbeSettings
from mcp_probe.connection.base import CapabilityProbePort
from mcp_probe.connection.probe import CapabilityProbe
from mcp_probe.tools.test import probe_command, test_server


@dataclass(frozen=True, slots=True)
class AppContext:
    """Shared state across all tool invocations."""

    settings: ProbeSettings
    probe: CapabilityProbePort


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Build the settings and probe once per server lifetime -- the composition root."""
    settings = ProbeSettings.from_env()
    yield AppContext(settings=settings, probe=CapabilityProbe(settings))


mcp = FastMCP(
    "mcp-probe",
    instructions=(
        "mcp-probe checks whether MCP servers start and what they offer.\n\n"
        "- **test_server** -- Test a server configured in the user's MCP client "
        "config (~/.claude.json by default) by name.\n"
        "- **probe_command** -- Test a server from a raw command, args and env, "
        "before it is added to any config.\n\n"
        "Each test spawns the server, runs the initialize handshake, lists tools, "
        "resources and prompts, and shuts the server down. A result with "
        "success=true but an empty list means the server does not offer (or "
        "failed to list) that capability; the handshake itself succeeded."
    ),
    lifespan=app_lifespan,
)

mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(test_server)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))(probe_command)
