"""
Server-sent event frame parsing for streamed chat completions.

Each frame is one line: `data: <json>` carries a payload, `data: [DONE]` ends
the stream, anything else (comments, `event:` lines, keep-alives) is ignored.
"""

import json
from typing import Any, Optional

from code_guardian.errors import StreamParseError

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class Frame:
    __slots__ = ("kind", "payload")

    IGNORED = "ignored"
    DONE = "done"
    DATA = "data"

    def __init__(self, kind: str, payload: Optional[Any] = None):
        self.kind = kind
        self.payload = payload

    def __repr__(self) -> str:
        return f"Frame(kind={self.kind!r})"


def parse_sse_line(line: str) -> Frame:
    """Classify one line of an event stream. Raises StreamParseError on bad JSON."""
    trimmed = line.strip()
    if not trimmed.startswith(DATA_PREFIX):
        return Frame(Frame.IGNORED)
    payload = trimmed[len(DATA_PREFIX):].strip()
    if not payload:
        return Frame(Frame.IGNORED)
    if payload == DONE_SENTINEL:
        return Frame(Frame.DONE)
    try:
        return Frame(Frame.DATA, json.loads(payload))
    except json.JSONDecodeError as e:
        raise StreamParseError(f"Malformed stream payload: {e}", payload) from e


def dig(payload: Any, *path: Any) -> Any:
    """Walk nested dicts/lists, returning None on any missing step."""
    current = payload
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
        if current is None:
            return None
    return current
