"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Response framing helpers: Accept negotiation and SSE event encoding.
"""

from __future__ import annotations

import json
from typing import Any

JSON_MEDIA_TYPE = "application/json"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"

# Comment frame closing every stream; SSE parsers ignore comments.
TERMINAL_FRAME = ": end-of-stream\n\n"


def _media_types(accept: str | None) -> set[str]:
    if not accept:
        return set()
    return {
        part.split(";", 1)[0].strip().lower()
        for part in accept.split(",")
        if part.strip()
    }


def wants_event_stream(accept: str | None, *, prefer: bool) -> bool:
    """
    Decide whether a reply should be streamed.

    A client that only accepts ``text/event-stream`` always gets a stream.
    A client that accepts both gets one when ``prefer`` is set.
    """
    types = _media_types(accept)
    if EVENT_STREAM_MEDIA_TYPE not in types:
        return False
    if JSON_MEDIA_TYPE in types or "*/*" in types:
        return prefer
    return True


def is_event_stream(content_type: str | None) -> bool:
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() == EVENT_STREAM_MEDIA_TYPE


def encode_event(message: Any, *, event: str = "message") -> str:
    """Encode one JSON-RPC message as an SSE frame."""
    data = json.dumps(message, separators=(",", ":"), default=str)
    return f"event: {event}\ndata: {data}\n\n"
