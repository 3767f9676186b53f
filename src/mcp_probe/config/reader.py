"""Read server definitions from an MCP client config file.

Config files follow: { "mcpServers": { "<name>": { ... } } }
Disabled servers live under "mcpServers_disabled" with the same shape.
This module only reads; editing and persisting definitions is left to
the application that owns the file.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from mcp_probe.errors import ConfigReadError, ServerNotFoundError
from mcp_probe.models import NamedServer, ServerDefinition

logger = logging.getLogger(__name__)

_ENABLED_KEY = "mcpServers"
_DISABLED_KEY = "mcpServers_disabled"


def read_config(config_path: Path | str) -> dict[str, object]:
    """Read a full MCP client config file.

    Returns an empty {"mcpServers": {}} if the file doesn't exist or is blank.
    """
    path = Path(config_path)
    if not path.exists():
        return {_ENABLED_KEY: {}}

    try:
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            return {_ENABLED_KEY: {}}
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigReadError(f"Invalid JSON in {path}: {exc}.") from exc
    except PermissionError as exc:
        raise ConfigReadError(f"Permission denied reading {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigReadError(f"{path} is not valid UTF-8: {exc}.") from exc
    except OSError as exc:
        raise ConfigReadError(f"Cannot read {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigReadError(f"Expected a JSON object at the top of {path}.")
    data.setdefault(_ENABLED_KEY, {})
    return data


async def aread_config(config_path: Path | str) -> dict[str, object]:
    """Async version of read_config. Use from async code to avoid blocking the event loop."""
    return await asyncio.to_thread(read_config, config_path)


def parse_servers(raw_config: dict[str, object]) -> list[NamedServer]:
    """Extract enabled and disabled server entries from a raw config dict."""
    result: list[NamedServer] = []
    for key, enabled in ((_ENABLED_KEY, True), (_DISABLED_KEY, False)):
        section = raw_config.get(key, {})
        if not isinstance(section, dict):
            continue
        for name, entry in section.items():
            if not isinstance(entry, dict) or not entry.get("command"):
                continue
            args = entry.get("args") or []
            env = entry.get("env") or {}
            if not isinstance(args, list) or not isinstance(env, dict):
                logger.warning("Skipping server '%s': malformed args or env", name)
                continue
            definition = ServerDefinition(
                command=str(entry["command"]),
                args=[str(a) for a in args],
                env={str(k): str(v) for k, v in env.items()},
            )
            result.append(NamedServer(name=name, definition=definition, enabled=enabled))
    return result


def find_server(servers: list[NamedServer], name: str, source: Path | str = "") -> NamedServer:
    target = next((s for s in servers if s.name == name), None)
    if target is None:
        where = f" in {source}" if source else ""
        raise ServerNotFoundError(f"Server '{name}' not found{where}.")
    return target
