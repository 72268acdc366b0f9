"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cross-origin middleware for browser-based MCP clients.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from starlette.datastructures import MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from toolserve.mcp.protocol import SESSION_HEADER

logger = logging.getLogger("toolserve.mcp.cors")

DEFAULT_ALLOW_METHODS = ("GET", "POST", "OPTIONS")
DEFAULT_ALLOW_HEADERS = ("Content-Type", "Authorization")
DEFAULT_EXPOSE_HEADERS = (SESSION_HEADER, "Content-Type", "Cache-Control")


class CORSHeadersMiddleware:
    """
    Pure ASGI middleware adding CORS headers to every response.

    Headers are merged into the ``http.response.start`` message, so they are
    in place before the first body byte; body messages are forwarded as-is,
    which keeps event streams unbuffered. Headers set by the wrapped app win.
    ``OPTIONS`` requests on ``preflight_paths`` are answered here with an
    empty 200 and never reach the app.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        allow_origin: str = "*",
        allow_methods: Sequence[str] = DEFAULT_ALLOW_METHODS,
        allow_headers: Sequence[str] = DEFAULT_ALLOW_HEADERS,
        expose_headers: Sequence[str] = DEFAULT_EXPOSE_HEADERS,
        preflight_paths: Iterable[str] | None = None,
    ) -> None:
        self.app = app
        self.cors_headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": ", ".join(allow_methods),
            "Access-Control-Allow-Headers": ", ".join(allow_headers),
            "Access-Control-Expose-Headers": ", ".join(expose_headers),
        }
        self.preflight_paths = (
            frozenset(preflight_paths) if preflight_paths is not None else None
        )

    def _is_preflight(self, scope: Scope) -> bool:
        if scope.get("method") != "OPTIONS":
            return False
        return self.preflight_paths is None or scope.get("path") in self.preflight_paths

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        logger.debug("CORS: %s %s", scope.get("method"), scope.get("path"))

        if self._is_preflight(scope):
            client = scope.get("client")
            logger.debug(
                "CORS: answering preflight for %s from %s",
                scope.get("path"),
                client[0] if client else "unknown",
            )
            response = Response(status_code=200, headers=self.cors_headers)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                headers = MutableHeaders(scope=message)
                for key, value in self.cors_headers.items():
                    headers.setdefault(key, value)
            await send(message)

        await self.app(scope, receive, send_with_cors)
