from __future__ import annotations

import json

import pytest

from toolserve.mcp.framing import (
    TERMINAL_FRAME,
    encode_event,
    is_event_stream,
    wants_event_stream,
)


@pytest.mark.parametrize(
    ("accept", "prefer", "expected"),
    [
        (None, True, False),
        ("application/json", True, False),
        ("*/*", True, False),
        ("text/event-stream", False, True),
        ("application/json, text/event-stream", True, True),
        ("application/json, text/event-stream", False, False),
        ("text/event-stream;q=0.9, */*", False, False),
        ("TEXT/EVENT-STREAM", False, True),
    ],
)
def test_wants_event_stream(accept, prefer, expected):
    assert wants_event_stream(accept, prefer=prefer) is expected


def test_is_event_stream_ignores_parameters():
    assert is_event_stream("text/event-stream; charset=utf-8")
    assert not is_event_stream("application/json")
    assert not is_event_stream(None)


def test_encode_event_frames_one_message():
    frame = encode_event({"jsonrpc": "2.0", "id": 1, "result": {"a": "b\nc"}})

    assert frame.startswith("event: message\ndata: ")
    assert frame.endswith("\n\n")
    lines = frame.rstrip("\n").split("\n")
    assert len(lines) == 2
    assert json.loads(lines[1][len("data: "):])["result"] == {"a": "b\nc"}


def test_terminal_frame_is_an_sse_comment():
    assert TERMINAL_FRAME.startswith(":")
    assert TERMINAL_FRAME.endswith("\n\n")
