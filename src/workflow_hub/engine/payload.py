"""Tagged payload variant decoded at the transport boundary.

The remote API returns terminal payloads either as text or as structured JSON
values. Both shapes are decoded once, when they leave the transport layer, so
the engine never branches on runtime types:

    TextPayload("plain output")            -> render() == "plain output"
    StructuredPayload({"a": 1})            -> render() == '{\\n  "a": 1\\n}'
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


def dumps_pretty(value: Any) -> str:
    """Serialize a JSON value with stable 2-space indentation."""
    return json.dumps(value, indent=2, ensure_ascii=False)


@dataclass(frozen=True)
class TextPayload:
    """Payload delivered as a plain string."""

    text: str

    def render(self) -> str:
        return self.text

    def to_json(self) -> Any:
        return self.text


@dataclass(frozen=True)
class StructuredPayload:
    """Payload delivered as a structured JSON value (object, array, number...)."""

    value: Any

    def render(self) -> str:
        return dumps_pretty(self.value)

    def to_json(self) -> Any:
        return self.value

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a key when the value is an object, otherwise return default."""
        if isinstance(self.value, dict):
            return self.value.get(key, default)
        return default


Payload = TextPayload | StructuredPayload


def decode_value(value: Any) -> Payload | None:
    """Decode an already-parsed JSON field (e.g. a run record ``output``).

    Strings stay text, every other non-null value is structured. ``None`` and
    the empty string mean "no payload".
    """
    if value is None:
        return None
    if isinstance(value, str):
        return TextPayload(value) if value else None
    return StructuredPayload(value)


def decode_text(data: str) -> Payload | None:
    """Decode raw event data (e.g. an SSE ``data:`` field).

    Data that parses as a JSON string becomes text; any other JSON value is
    structured; data that is not JSON at all is kept as text.
    """
    if not data:
        return None
    try:
        value = json.loads(data)
    except json.JSONDecodeError:
        return TextPayload(data)
    return decode_value(value)


__all__ = [
    "Payload",
    "TextPayload",
    "StructuredPayload",
    "decode_text",
    "decode_value",
    "dumps_pretty",
]
