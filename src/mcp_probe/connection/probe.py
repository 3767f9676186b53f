"""Probe an MCP server: spawn it, shake hands, list what it offers, shut it down."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

from mcp_probe.config.settings import ProbeSettings
from mcp_probe.connection.base import LauncherPort
from mcp_probe.connection.launcher import LaunchedProcess, ProcessLauncher
from mcp_probe.connection.session import ProtocolSession
from mcp_probe.errors import McpProbeError
from mcp_probe.models import (
    InitializeResult,
    ProbeState,
    ServerDefinition,
    TestCapabilities,
    TestResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CapabilityProbe:
    """Runs the discovery sequence against one server per ``run()`` call.

    SPAWNING -> INITIALIZING -> PROBING -> FINALIZING -> DONE.
    Spawn and handshake failures end the run with ``success=False``.
    Listing failures only empty the affected list. FINALIZING always runs:
    the session is cleaned up and the process terminated on every path,
    including cancellation of ``run()`` itself.
    """

    def __init__(
        self,
        settings: ProbeSettings | None = None,
        *,
        launcher: LauncherPort | None = None,
    ) -> None:
        self._settings = settings or ProbeSettings()
        self._launcher = launcher

    async def run(
        self,
        definition: ServerDefinition,
        *,
        settings: ProbeSettings | None = None,
    ) -> TestResult:
        settings = settings or self._settings
        launcher = self._launcher or ProcessLauncher(kill_grace=settings.kill_grace)
        timestamp = datetime.now(UTC)
        started = time.monotonic()

        process: LaunchedProcess | None = None
        session: ProtocolSession | None = None
        handshake: InitializeResult | None = None
        capabilities: TestCapabilities | None = None
        error: str | None = None
        state = _enter(ProbeState.SPAWNING, definition)

        try:
            process = await launcher.launch(definition)

            state = _enter(ProbeState.INITIALIZING, definition)
            session = ProtocolSession.for_process(process, settings)
            handshake = await session.initialize()

            state = _enter(ProbeState.PROBING, definition)
            capabilities = await self._collect(session)
        except McpProbeError as exc:
            logger.warning("Probe of %s failed while %s: %s", definition.command, state, exc)
            error = str(exc)
        except Exception as exc:
            logger.exception("Unexpected error probing %s", definition.command)
            error = f"{type(exc).__name__}: {exc}"
        finally:
            _enter(ProbeState.FINALIZING, definition)
            duration_ms = int((time.monotonic() - started) * 1000)
            if session is not None:
                session.cleanup()
            if process is not None:
                await process.terminate()
            if session is not None:
                await session.wait_closed()

        _enter(ProbeState.DONE, definition)
        if error is not None or handshake is None:
            return TestResult(
                success=False,
                timestamp=timestamp,
                duration_ms=duration_ms,
                error=error or "Server did not complete the handshake",
            )
        return TestResult(
            success=True,
            timestamp=timestamp,
            duration_ms=duration_ms,
            server_info=handshake.server_info,
            protocol_version=handshake.protocol_version,
            capabilities=capabilities,
        )

    async def _collect(self, session: ProtocolSession) -> TestCapabilities:
        """Enumerate capabilities one call at a time; no failure stops the rest."""
        tools = await _best_effort("tools/list", session.list_tools, [])
        resources = await _best_effort("resources/list", session.list_resources, [])
        prompts = await _best_effort("prompts/list", session.list_prompts, [])
        # Liveness only; the outcome does not affect the result
        await _best_effort("ping", session.ping, None)
        return TestCapabilities(tools=tools, resources=resources, prompts=prompts)


async def probe_server(
    definition: ServerDefinition,
    settings: ProbeSettings | None = None,
) -> TestResult:
    """Convenience wrapper: run a fresh CapabilityProbe once."""
    return await CapabilityProbe(settings).run(definition)


async def _best_effort(label: str, call: Callable[[], Awaitable[T]], default: T) -> T:
    try:
        return await call()
    except McpProbeError as exc:
        logger.warning("%s failed, continuing: %s", label, exc)
        return default


def _enter(state: ProbeState, definition: ServerDefinition) -> ProbeState:
    logger.debug("Probe %s: %s", definition.command, state)
    return state
