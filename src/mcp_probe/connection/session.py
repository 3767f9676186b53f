"""JSON-RPC client session over a server's stdin/stdout.

Requests carry integer ids from a per-session counter. Each in-flight
request lives in the pending table until exactly one of three things
happens: its response arrives, its timer fires, or the session closes.
All three paths remove the entry through ``_settle()``, so whichever
comes first wins and the others find nothing to do.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from mcp_probe import __version__
from mcp_probe.config.settings import DEFAULT_REQUEST_TIMEOUT
from mcp_probe.connection.framer import ResponseFramer
from mcp_probe.errors import ProtocolError, RequestTimeoutError, SessionClosedError
from mcp_probe.models import InitializeResult, JsonObject

if TYPE_CHECKING:
    from mcp_probe.config.settings import ProbeSettings
    from mcp_probe.connection.launcher import LaunchedProcess

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_NAME = "mcp-probe"

_METHOD_NOT_FOUND = -32601


@dataclass(slots=True)
class PendingRequest:
    request_id: int
    method: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None


class ProtocolSession:
    """Talks JSON-RPC 2.0 to one server process.

    ``reader`` must offer an awaitable ``read(n)``; ``writer`` must offer
    ``write(bytes)`` and ``is_closing()``. In production these are the
    launched process's stdout and stdin.
    """

    def __init__(
        self,
        reader: Any,
        writer: Any,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        initialize_timeout: float | None = None,
        framer: ResponseFramer | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._request_timeout = request_timeout
        self._initialize_timeout = initialize_timeout
        self._framer = framer or ResponseFramer()
        self._next_id = 1
        self._pending: dict[int, PendingRequest] = {}
        self._reader_task: asyncio.Task[None] | None = None
        self._closed = False
        self._eof = False

    @classmethod
    def for_process(cls, process: LaunchedProcess, settings: ProbeSettings) -> ProtocolSession:
        return cls(
            process.stdout,
            process.stdin,
            request_timeout=settings.request_timeout,
            initialize_timeout=settings.handshake_timeout,
        )

    async def __aenter__(self) -> ProtocolSession:
        self._ensure_reader()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.cleanup()
        await self.wait_closed()

    @property
    def pending_ids(self) -> list[int]:
        return list(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed or self._eof

    # ─── MCP operations ───────────────────────────────────────

    async def initialize(self) -> InitializeResult:
        """Perform the handshake and send ``notifications/initialized``."""
        params = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": CLIENT_NAME, "version": __version__},
        }
        raw = await self.request("initialize", params, timeout=self._initialize_timeout)
        result = InitializeResult.from_wire(raw)
        self.notify("notifications/initialized")
        return result

    async def list_tools(self) -> list[JsonObject]:
        return _listed_items(await self.request("tools/list"), "tools")

    async def list_resources(self) -> list[JsonObject]:
        return _listed_items(await self.request("resources/list"), "resources")

    async def list_prompts(self) -> list[JsonObject]:
        return _listed_items(await self.request("prompts/list"), "prompts")

    async def ping(self) -> Any:
        return await self.request("ping")

    # ─── JSON-RPC plumbing ────────────────────────────────────

    async def request(
        self, method: str, params: JsonObject | None = None, *, timeout: float | None = None
    ) -> Any:
        return await self.send_request(method, params, timeout=timeout)

    def send_request(
        self, method: str, params: JsonObject | None = None, *, timeout: float | None = None
    ) -> asyncio.Future[Any]:
        """Write a request and return the future that its response will settle.

        The future fails with RequestTimeoutError if nothing arrives within
        ``timeout`` seconds (the session default when None), with
        ProtocolError if the server answers with an error object, and with
        SessionClosedError if the session shuts down first.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        if self.closed:
            future.set_exception(SessionClosedError(f"Session is closed; cannot send {method}"))
            return future

        self._ensure_reader()
        request_id = self._next_id
        self._next_id += 1

        message: JsonObject = {"jsonrpc": "2.0", "method": method, "id": request_id}
        if params is not None:
            message["params"] = params

        window = self._request_timeout if timeout is None else timeout
        pending = PendingRequest(request_id=request_id, method=method, future=future)
        pending.timer = loop.call_later(window, self._expire, request_id, window)
        self._pending[request_id] = pending
        future.add_done_callback(partial(self._forget_cancelled, request_id))

        if not self._write(message):
            error = SessionClosedError(f"Server stdin is closed; cannot send {method}")
            self._reject(request_id, error)
        return future

    def notify(self, method: str, params: JsonObject | None = None) -> None:
        """Send a notification. No id, no response, no pending entry."""
        message: JsonObject = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        if not self.closed:
            self._write(message)

    def cleanup(self) -> None:
        """Reject every pending request and stop reading. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._reject_all("Session closed - request cancelled")
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()

    async def wait_closed(self) -> None:
        """Wait for the reader task to finish after ``cleanup()`` or EOF."""
        if self._reader_task is not None:
            await asyncio.wait({self._reader_task})

    # ─── Internals ────────────────────────────────────────────

    def _ensure_reader(self) -> None:
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        try:
            async for envelope in self._framer.envelopes(self._reader):
                self._dispatch(envelope)
        except OSError as exc:
            logger.warning("Reading server output failed: %s", exc)
        self._eof = True
        self._reject_all("Server closed its output stream")

    def _write(self, message: JsonObject) -> bool:
        if self._writer.is_closing():
            return False
        line = json.dumps(message, separators=(",", ":")) + "\n"
        try:
            self._writer.write(line.encode("utf-8"))
        except (OSError, RuntimeError) as exc:
            logger.warning("Writing %s to server failed: %s", message.get("method"), exc)
            return False
        return True

    def _settle(self, request_id: int) -> PendingRequest | None:
        """Remove a pending entry and stop its timer.

        The only place entries leave the table. Returns None when the id
        was already settled (or never existed).
        """
        pending = self._pending.pop(request_id, None)
        if pending is not None and pending.timer is not None:
            pending.timer.cancel()
        return pending

    def _reject(self, request_id: int, error: Exception) -> None:
        pending = self._settle(request_id)
        if pending is not None and not pending.future.done():
            pending.future.set_exception(error)

    def _reject_all(self, reason: str) -> None:
        for request_id in list(self._pending):
            pending = self._settle(request_id)
            if pending is not None and not pending.future.done():
                pending.future.set_exception(SessionClosedError(f"{reason} ({pending.method})"))

    def _expire(self, request_id: int, window: float) -> None:
        pending = self._settle(request_id)
        if pending is None or pending.future.done():
            return
        logger.warning("Request %d (%s) timed out after %gs", request_id, pending.method, window)
        pending.future.set_exception(RequestTimeoutError(pending.method, window))

    def _forget_cancelled(self, request_id: int, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            self._settle(request_id)

    def _dispatch(self, envelope: JsonObject) -> None:
        if "method" in envelope:
            self._answer_server_request(envelope)
            return

        request_id = _normalize_id(envelope.get("id"))
        pending = self._settle(request_id) if request_id is not None else None
        if pending is None:
            logger.warning("Dropping response for unknown request id %r", envelope.get("id"))
            return
        if pending.future.done():
            return

        error = envelope.get("error")
        if error is not None:
            if isinstance(error, dict):
                exc = ProtocolError(error.get("code"), error.get("message"), error.get("data"))
            else:
                exc = ProtocolError(None, error)
            pending.future.set_exception(exc)
        else:
            pending.future.set_result(envelope.get("result"))

    def _answer_server_request(self, envelope: JsonObject) -> None:
        """Reply to server-initiated requests so the server is never left waiting.

        The probe declares no client capabilities, so only ``ping`` is answered
        with a result; everything else gets "method not found".
        """
        method = envelope["method"]
        reply: JsonObject = {"jsonrpc": "2.0", "id": envelope["id"]}
        if method == "ping":
            reply["result"] = {}
        else:
            reply["error"] = {"code": _METHOD_NOT_FOUND, "message": f"Method not found: {method}"}
        logger.debug("Answering server request %r (%s)", envelope["id"], method)
        if not self.closed:
            self._write(reply)


def _normalize_id(raw: object) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw)
    return None


def _listed_items(raw: object, key: str) -> list[JsonObject]:
    items = raw.get(key) if isinstance(raw, dict) else None
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]
