"""Exception hierarchy for mcp-probe.

All exceptions inherit from McpProbeError (single catch point).
Messages end up verbatim in TestResult.error, so they are written for
the person reading the result -- short, specific, no stack traces.
"""

from __future__ import annotations


class McpProbeError(Exception):
    """Base exception for all mcp-probe errors."""


class SpawnError(McpProbeError):
    """The server executable could not be started."""


class RequestTimeoutError(McpProbeError, TimeoutError):
    """A JSON-RPC request got no response within its timeout window."""

    def __init__(self, method: str, timeout: float) -> None:
        self.method = method
        self.timeout = timeout
        super().__init__(f"Request timeout for method: {method} (no response after {timeout:g}s)")


class ProtocolError(McpProbeError):
    """The server answered a request with a JSON-RPC error object."""

    def __init__(self, code: object, message: object, data: object = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"JSON-RPC error {code}: {message}")


class SessionClosedError(McpProbeError):
    """A pending request was abandoned because the session shut down."""


class FrameParseError(McpProbeError):
    """A protocol-looking output line could not be decoded as JSON.

    Raised and caught inside the framer only; it never reaches callers.
    """

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Undecodable line ({reason}): {line[:200]}")


class ConfigReadError(McpProbeError):
    """Error reading the server definitions file or probe settings."""


class ServerNotFoundError(McpProbeError):
    """Server name not found in the definitions file."""
