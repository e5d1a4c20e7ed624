"""Server-sent event decoding for streamed workflow runs.

The stream endpoint answers with ``text/event-stream``:

    id: 0
    event: Message
    data: {"content": "partial output", "node_title": "End"}

    id: 1
    event: Done
    data: {"debug_url": "https://..."}

Events are separated by blank lines. Each event becomes one StreamChunk tagged
with a ChunkKind: ``Done`` is the completion event, ``Error`` the error event,
and everything else (Message, Interrupt, PING...) is data.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .payload import Payload, StructuredPayload, decode_text

COMPLETION_EVENT = "Done"
ERROR_EVENT = "Error"
DEFAULT_STREAM_ERROR = "Workflow execution failed"


class ChunkKind(str, Enum):
    COMPLETION = "completion"
    ERROR = "error"
    DATA = "data"


@dataclass
class ServerSentEvent:
    """One raw event as read from the wire."""

    event: str = "message"
    data: str = ""
    id: str | None = None
    retry: int | None = None


@dataclass(frozen=True)
class StreamChunk:
    """One decoded unit of a streamed response."""

    event: str
    kind: ChunkKind
    payload: Payload | None = None
    id: str | None = None
    raw: str = field(default="", repr=False)

    @classmethod
    def from_event(cls, sse: ServerSentEvent) -> StreamChunk:
        if sse.event == COMPLETION_EVENT:
            kind = ChunkKind.COMPLETION
        elif sse.event == ERROR_EVENT:
            kind = ChunkKind.ERROR
        else:
            kind = ChunkKind.DATA
        return cls(
            event=sse.event,
            kind=kind,
            payload=decode_text(sse.data),
            id=sse.id,
            raw=sse.data,
        )

    def error_message(self) -> str:
        """Message embedded in an error chunk, or the generic fallback."""
        if isinstance(self.payload, StructuredPayload):
            message = self.payload.get("error_message")
            if message:
                return str(message)
        elif self.payload is not None and self.payload.render().strip():
            return self.payload.render()
        return DEFAULT_STREAM_ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event": self.event,
            "data": self.payload.to_json() if self.payload is not None else None,
        }

    def describe(self) -> str:
        """Verbatim JSON rendering used in the progress log."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


async def iter_sse_events(lines: AsyncIterable[str]) -> AsyncIterator[ServerSentEvent]:
    """Group decoded text lines into server-sent events.

    Follows the EventSource parsing rules: ``field: value`` lines, comment
    lines starting with ``:``, multiple ``data`` lines joined with newlines,
    and a blank line dispatching the event. A trailing event without the
    final blank line is still dispatched.
    """
    current = ServerSentEvent()
    data_lines: list[str] = []
    has_fields = False

    async for line in lines:
        line = line.rstrip("\r\n")

        if not line:
            if has_fields:
                current.data = "\n".join(data_lines)
                yield current
            current = ServerSentEvent()
            data_lines = []
            has_fields = False
            continue

        if line.startswith(":"):
            continue

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "event":
            current.event = value
        elif name == "data":
            data_lines.append(value)
        elif name == "id":
            current.id = value
        elif name == "retry":
            if value.isdigit():
                current.retry = int(value)
        else:
            continue
        has_fields = True

    if has_fields:
        current.data = "\n".join(data_lines)
        yield current


async def iter_chunks(lines: AsyncIterable[str]) -> AsyncIterator[StreamChunk]:
    """Decode a line stream directly into StreamChunks."""
    async for sse in iter_sse_events(lines):
        yield StreamChunk.from_event(sse)


__all__ = [
    "ChunkKind",
    "ServerSentEvent",
    "StreamChunk",
    "iter_sse_events",
    "iter_chunks",
    "COMPLETION_EVENT",
    "ERROR_EVENT",
    "DEFAULT_STREAM_ERROR",
]
