"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Diagnostic response capture for debug logging.

Each response moves exactly once from ``UNDETERMINED`` to either ``BUFFERED``
(first ``limit`` body bytes kept) or ``STREAMING`` (nothing kept). The switch
happens when the response start message is sent, based on the committed
``Content-Type``. Capture never changes what reaches the client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from toolserve.mcp.framing import is_event_stream

logger = logging.getLogger("toolserve.mcp.capture")

DEFAULT_CAPTURE_LIMIT = 1024


class CaptureState(str, Enum):
    UNDETERMINED = "undetermined"
    BUFFERED = "buffered"
    STREAMING = "streaming"


@dataclass(slots=True)
class ResponseCapture:
    """Capture record for one HTTP response."""

    method: str = ""
    path: str = ""
    limit: int = DEFAULT_CAPTURE_LIMIT
    state: CaptureState = CaptureState.UNDETERMINED
    status_code: int | None = None
    content_type: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytearray = field(default_factory=bytearray)
    bytes_sent: int = 0

    def commit(self, status_code: int, raw_headers: Iterable[tuple[bytes, bytes]]) -> None:
        if self.state is not CaptureState.UNDETERMINED:
            raise RuntimeError("response headers already committed")
        headers = Headers(raw=list(raw_headers))
        self.status_code = status_code
        self.headers = dict(headers.items())
        self.content_type = headers.get("content-type")
        self.state = (
            CaptureState.STREAMING
            if is_event_stream(self.content_type)
            else CaptureState.BUFFERED
        )

    def record(self, chunk: bytes) -> None:
        self.bytes_sent += len(chunk)
        if self.state is not CaptureState.BUFFERED:
            return
        remaining = self.limit - len(self.body)
        if remaining > 0:
            self.body.extend(chunk[:remaining])

    @property
    def captured_bytes(self) -> int:
        return len(self.body)

    @property
    def truncated(self) -> bool:
        return self.state is CaptureState.BUFFERED and self.bytes_sent > len(self.body)

    def preview(self) -> str:
        return bytes(self.body).decode("utf-8", errors="replace")


class ResponseCaptureMiddleware:
    """Pure ASGI middleware recording a bounded view of each response."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        limit: int = DEFAULT_CAPTURE_LIMIT,
        on_complete: Callable[[ResponseCapture], Any] | None = None,
    ) -> None:
        self.app = app
        self.limit = limit
        self.on_complete = on_complete

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        capture = ResponseCapture(
            method=scope.get("method", ""),
            path=scope.get("path", ""),
            limit=self.limit,
        )

        async def send_with_capture(message: Message) -> None:
            if message["type"] == "http.response.start":
                capture.commit(message["status"], message.get("headers", []))
                if capture.state is CaptureState.STREAMING:
                    logger.debug(
                        "%s %s: streaming response, body capture disabled",
                        capture.method,
                        capture.path,
                    )
            elif message["type"] == "http.response.body":
                capture.record(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_with_capture)
        finally:
            self._report(capture)

    def _report(self, capture: ResponseCapture) -> None:
        if capture.state is CaptureState.BUFFERED:
            logger.debug(
                "%s %s -> %s (%s, %d bytes%s): %s",
                capture.method,
                capture.path,
                capture.status_code,
                capture.content_type,
                capture.bytes_sent,
                ", truncated" if capture.truncated else "",
                capture.preview(),
            )
        else:
            logger.debug(
                "%s %s -> %s (%s, %s, %d bytes streamed)",
                capture.method,
                capture.path,
                capture.status_code,
                capture.content_type,
                capture.state.value,
                capture.bytes_sent,
            )
        if self.on_complete is not None:
            self.on_complete(capture)
