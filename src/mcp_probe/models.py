"""Domain models for mcp-probe. All frozen dataclasses -- no mutation after creation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

# A tool, resource or prompt descriptor exactly as the server reported it.
JsonObject = dict[str, Any]

# ─── Enumerations ─────────────────────────────────────────────


class ProbeState(StrEnum):
    SPAWNING = "spawning"
    INITIALIZING = "initializing"
    PROBING = "probing"
    FINALIZING = "finalizing"
    DONE = "done"


# ─── Input Models ─────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ServerDefinition:
    """How to launch one MCP server: executable, arguments and env overlay."""

    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"command": self.command, "args": list(self.args)}
        if self.env:
            result["env"] = dict(self.env)
        return result


@dataclass(frozen=True, slots=True)
class NamedServer:
    """A server definition as listed in a definitions file."""

    name: str
    definition: ServerDefinition
    enabled: bool = True


# ─── Protocol Models ──────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ServerInfo:
    name: str
    version: str = ""

    @classmethod
    def from_wire(cls, raw: object) -> ServerInfo | None:
        if not isinstance(raw, dict) or "name" not in raw:
            return None
        return cls(name=str(raw["name"]), version=str(raw.get("version", "")))

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version}


@dataclass(frozen=True, slots=True)
class InitializeResult:
    """What the server declared in its answer to the initialize handshake."""

    protocol_version: str | None = None
    server_info: ServerInfo | None = None
    capabilities: JsonObject = field(default_factory=dict)

    @classmethod
    def from_wire(cls, raw: object) -> InitializeResult:
        if not isinstance(raw, dict):
            return cls()
        version = raw.get("protocolVersion")
        capabilities = raw.get("capabilities")
        return cls(
            protocol_version=str(version) if version is not None else None,
            server_info=ServerInfo.from_wire(raw.get("serverInfo")),
            capabilities=dict(capabilities) if isinstance(capabilities, dict) else {},
        )


# ─── Result Models ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TestCapabilities:
    """Enumerated capabilities. A sequence is empty when its listing call failed."""

    __test__ = False  # not a pytest test class

    tools: tuple[JsonObject, ...] = ()
    resources: tuple[JsonObject, ...] = ()
    prompts: tuple[JsonObject, ...] = ()

    def __post_init__(self) -> None:
        for name in ("tools", "resources", "prompts"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def to_dict(self) -> dict[str, list[JsonObject]]:
        return {
            "tools": list(self.tools),
            "resources": list(self.resources),
            "prompts": list(self.prompts),
        }


@dataclass(frozen=True, slots=True)
class TestResult:
    """Outcome of probing one server. Built once at the end of a probe run."""

    __test__ = False  # not a pytest test class

    success: bool
    timestamp: datetime
    duration_ms: int
    server_info: ServerInfo | None = None
    protocol_version: str | None = None
    capabilities: TestCapabilities | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Render the collaborator-facing shape, omitting absent fields."""
        result: dict[str, object] = {"success": self.success}
        if self.server_info is not None:
            result["serverInfo"] = self.server_info.to_dict()
        if self.protocol_version is not None:
            result["protocolVersion"] = self.protocol_version
        if self.capabilities is not None:
            result["capabilities"] = self.capabilities.to_dict()
        if self.error is not None:
            result["error"] = self.error
        result["timestamp"] = self.timestamp.isoformat()
        result["durationMs"] = self.duration_ms
        return result
