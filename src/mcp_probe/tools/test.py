"""test_server and probe_command tools -- probe an MCP server and report its capabilities."""

from __future__ import annotations

from mcp.server.fastmcp import Context

from mcp_probe.config.reader import aread_config, find_server, parse_servers
from mcp_probe.errors import McpProbeError
from mcp_probe.models import ServerDefinition
from mcp_probe.tools._helpers import get_context


async def test_server(
    server_name: str,
    ctx: Context,
    config_file: str = "",
    timeout_seconds: int = 0,
) -> dict[str, object]:
    """Test a configured MCP server and discover its tools, resources and prompts.

    Spawns the server process, performs the MCP initialize handshake, lists
    tools, resources and prompts, pings it, then shuts it down. Servers under
    "mcpServers_disabled" can be tested too.

    Args:
        server_name: Exact name of the server as it appears in the config file.
        config_file: Path to the MCP client config file. Defaults to
            MCP_PROBE_CONFIG or ~/.claude.json.
        timeout_seconds: Per-request timeout (clamped to 1-60). 0 uses the
            configured default.

    Returns:
        The test result: success, serverInfo, protocolVersion, capabilities
        (tools/resources/prompts), error, timestamp and durationMs, plus the
        server_name that was tested.
    """
    try:
        app = get_context(ctx)
        source = config_file or str(app.settings.definitions_path)
        servers = parse_servers(await aread_config(source))
        target = find_server(servers, server_name, source)

        settings = app.settings.with_timeout(timeout_seconds)
        result = await app.probe.run(target.definition, settings=settings)
        return result.to_dict() | {"server_name": server_name}

    except McpProbeError as exc:
        return {"success": False, "server_name": server_name, "error": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in test_server: {exc}")
        return {
            "success": False,
            "server_name": server_name,
            "error": f"Internal error: {type(exc).__name__}",
        }


async def probe_command(
    command: str,
    ctx: Context,
    args: list[str] | None = None,
    env: dict[str, str] | None = None,
    timeout_seconds: int = 0,
) -> dict[str, object]:
    """Probe an MCP server that is not in any config file.

    Use this to try a server command before adding it to a client config.

    Args:
        command: Executable to run, e.g. "npx" or "uvx".
        args: Arguments for the command, e.g. ["-y", "@modelcontextprotocol/server-memory"].
        env: Extra environment variables, layered over the current environment.
        timeout_seconds: Per-request timeout (clamped to 1-60). 0 uses the
            configured default.

    Returns:
        The same result shape as test_server, without server_name.
    """
    try:
        app = get_context(ctx)
        definition = ServerDefinition(command=command, args=list(args or []), env=dict(env or {}))
        settings = app.settings.with_timeout(timeout_seconds)
        result = await app.probe.run(definition, settings=settings)
        return result.to_dict()

    except McpProbeError as exc:
        return {"success": False, "error": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in probe_command: {exc}")
        return {"success": False, "error": f"Internal error: {type(exc).__name__}"}
