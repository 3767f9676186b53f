"""Command-line runner: probe one MCP server and print the result."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from mcp_probe.config.reader import find_server, parse_servers, read_config
from mcp_probe.config.settings import ProbeSettings
from mcp_probe.connection.probe import CapabilityProbe
from mcp_probe.errors import McpProbeError
from mcp_probe.models import ServerDefinition, TestResult

EXIT_OK = 0
EXIT_PROBE_FAILED = 1
EXIT_USAGE = 2


def _parse_env_pair(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    return key, value


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mcp-probe-run",
        description=(
            "Spawn an MCP server, run the initialize handshake and list its tools, "
            "resources and prompts."
        ),
        epilog="Example: mcp-probe-run -- npx -y @modelcontextprotocol/server-memory",
    )
    parser.add_argument(
        "--server",
        default="",
        help="Name of a server in the config file to probe instead of a command.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file holding mcpServers. Defaults to MCP_PROBE_CONFIG or ~/.claude.json.",
    )
    parser.add_argument(
        "--env",
        action="append",
        type=_parse_env_pair,
        default=[],
        metavar="KEY=VALUE",
        help="Extra environment variable for the server (repeatable).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=0,
        help="Per-request timeout in seconds (clamped to 1-60). 0 keeps the default.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON instead of human-readable text.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log protocol details.")
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Server command and arguments (put them after --).",
    )
    args = parser.parse_args(argv)
    if args.command and args.command[0] == "--":
        args.command = args.command[1:]
    if bool(args.server) == bool(args.command):
        parser.error("give either --server NAME or a command after --, not both")
    return args


def _resolve_definition(args: argparse.Namespace, settings: ProbeSettings) -> ServerDefinition:
    extra_env = dict(args.env)
    if args.command:
        return ServerDefinition(command=args.command[0], args=args.command[1:], env=extra_env)

    source = args.config or settings.definitions_path
    target = find_server(parse_servers(read_config(source)), args.server, source)
    definition = target.definition
    if extra_env:
        definition = ServerDefinition(
            command=definition.command,
            args=list(definition.args),
            env={**definition.env, **extra_env},
        )
    return definition


def _format_result_text(result: TestResult) -> str:
    status = "PASS" if result.success else "FAIL"
    lines = [f"{status} in {result.duration_ms} ms"]
    if result.server_info is not None:
        lines.append(f"Server: {result.server_info.name} {result.server_info.version}".rstrip())
    if result.protocol_version:
        lines.append(f"Protocol: {result.protocol_version}")
    if result.error:
        lines.append(f"Error: {result.error}")
    if result.capabilities is not None:
        for label, items in (
            ("Tools", result.capabilities.tools),
            ("Resources", result.capabilities.resources),
            ("Prompts", result.capabilities.prompts),
        ):
            names = [str(item.get("name") or item.get("uri") or "?") for item in items]
            lines.append(f"{label} ({len(names)}): {', '.join(names) if names else '-'}")
    return "\n".join(lines)


def run_cli(argv: list[str] | None = None) -> int:
    """CLI runner for a single server probe."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = ProbeSettings.from_env()
        if args.config is not None:
            settings = replace(settings, config_path=args.config)
        settings = settings.with_timeout(args.timeout)
        definition = _resolve_definition(args, settings)
    except McpProbeError as exc:
        print(f"mcp-probe-run: {exc}", file=sys.stderr)
        return EXIT_USAGE

    result = asyncio.run(CapabilityProbe(settings).run(definition))

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(_format_result_text(result))

    return EXIT_OK if result.success else EXIT_PROBE_FAILED


def main() -> None:
    """Entry point for `mcp-probe-run`."""
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
