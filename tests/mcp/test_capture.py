from __future__ import annotations

import asyncio

import pytest

from toolserve.mcp import CaptureState, ResponseCapture, ResponseCaptureMiddleware


def run_async(coro):
    return asyncio.run(coro)


def test_buffered_capture_keeps_at_most_limit_bytes():
    capture = ResponseCapture(limit=8)
    capture.commit(200, [(b"content-type", b"application/json")])

    capture.record(b"12345")
    capture.record(b"67890")
    capture.record(b"abc")

    assert capture.state is CaptureState.BUFFERED
    assert capture.preview() == "12345678"
    assert capture.captured_bytes == 8
    assert capture.bytes_sent == 13
    assert capture.truncated


def test_streaming_capture_keeps_nothing():
    capture = ResponseCapture()
    capture.commit(200, [(b"content-type", b"text/event-stream; charset=utf-8")])

    capture.record(b"event: message\ndata: {}\n\n")

    assert capture.state is CaptureState.STREAMING
    assert capture.captured_bytes == 0
    assert capture.bytes_sent == 25
    assert not capture.truncated


def test_capture_state_transitions_only_once():
    capture = ResponseCapture()
    capture.commit(200, [])

    with pytest.raises(RuntimeError):
        capture.commit(200, [(b"content-type", b"text/event-stream")])
    assert capture.state is CaptureState.BUFFERED


def test_nothing_is_recorded_before_headers_are_committed():
    capture = ResponseCapture()

    capture.record(b"early")

    assert capture.state is CaptureState.UNDETERMINED
    assert capture.captured_bytes == 0


def test_middleware_forwards_messages_unchanged():
    captures: list[ResponseCapture] = []
    start = {
        "type": "http.response.start",
        "status": 201,
        "headers": [(b"content-type", b"text/plain")],
    }
    chunks = [
        {"type": "http.response.body", "body": b"a" * 700, "more_body": True},
        {"type": "http.response.body", "body": b"b" * 700, "more_body": False},
    ]

    async def app(scope, receive, send):
        await send(dict(start))
        for chunk in chunks:
            await send(dict(chunk))

    sent: list[dict] = []

    async def send(message):
        sent.append(message)

    async def receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    middleware = ResponseCaptureMiddleware(app, limit=1024, on_complete=captures.append)
    run_async(middleware({"type": "http", "method": "GET", "path": "/x"}, receive, send))

    assert sent == [start, *chunks]
    capture = captures[0]
    assert capture.method == "GET"
    assert capture.path == "/x"
    assert capture.status_code == 201
    assert capture.captured_bytes == 1024
    assert capture.bytes_sent == 1400


def test_middleware_ignores_non_http_scopes():
    seen = []

    async def app(scope, receive, send):
        seen.append(scope["type"])

    middleware = ResponseCaptureMiddleware(app, on_complete=seen.append)
    run_async(middleware({"type": "lifespan"}, None, None))

    assert seen == ["lifespan"]
