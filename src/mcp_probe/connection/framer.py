"""Split a server's stdout into JSON-RPC envelopes.

Servers interleave free-text diagnostics with protocol traffic on the same
stream, so anything that is not a JSON-RPC 2.0 message with an id is
dropped here instead of failing the session.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from mcp_probe.errors import FrameParseError

logger = logging.getLogger(__name__)

_READ_SIZE = 64 * 1024
_JSON_OPENERS = ("{", "[")


class ResponseFramer:
    """Incremental newline framer. Feed it bytes, get decoded envelopes back.

    Partial lines are kept until the rest of the line arrives; multibyte
    UTF-8 characters split across reads are decoded correctly.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._parts: list[str] = []

    @property
    def pending_text(self) -> str:
        """The incomplete trailing fragment held for the next chunk."""
        return "".join(self._parts)

    def feed(self, chunk: bytes | str) -> list[dict[str, Any]]:
        """Append a chunk and return envelopes for every completed line."""
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        if "\n" not in text:
            if text:
                self._parts.append(text)
            return []
        self._parts.append(text)
        *lines, tail = "".join(self._parts).split("\n")
        self._parts = [tail] if tail else []
        return [env for env in map(_frame_line, lines) if env is not None]

    def flush(self) -> list[dict[str, Any]]:
        """Frame whatever is left once the stream has ended."""
        tail = "".join(self._parts) + self._decoder.decode(b"", final=True)
        self._parts = []
        envelope = _frame_line(tail)
        return [envelope] if envelope is not None else []

    async def envelopes(self, reader: Any) -> AsyncIterator[dict[str, Any]]:
        """Pull chunks from ``reader`` until EOF, yielding envelopes as they complete.

        ``reader`` is anything with an awaitable ``read(n)`` returning bytes,
        normally an ``asyncio.StreamReader``.
        """
        while chunk := await reader.read(_READ_SIZE):
            for envelope in self.feed(chunk):
                yield envelope
        for envelope in self.flush():
            yield envelope


def _frame_line(line: str) -> dict[str, Any] | None:
    stripped = line.strip()
    if not stripped:
        return None
    if not stripped.startswith(_JSON_OPENERS):
        logger.debug("Server output: %s", stripped)
        return None

    try:
        value = _decode(stripped)
    except FrameParseError as exc:
        logger.warning("%s", exc)
        return None

    if not isinstance(value, dict):
        logger.debug("Ignoring non-object JSON line: %s", stripped[:200])
        return None
    if value.get("jsonrpc") != "2.0" or value.get("id") is None:
        logger.debug("Ignoring non-response JSON-RPC line: %s", stripped[:200])
        return None
    return value


def _decode(line: str) -> object:
    try:
        return json.loads(line)
    except json.JSONDecodeError as exc:
        raise FrameParseError(line, exc.msg) from exc
