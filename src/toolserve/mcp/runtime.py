"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

MCP (Model Context Protocol) server built on FastAPI.

Exposes tools from a ``ToolRegistry`` as MCP-compatible endpoints,
following the JSON-RPC 2.0 wire format and the streamable HTTP transport.

Supports:
- ``initialize``: server capability handshake
- ``tools/list``: discover available tools
- ``tools/call``: execute a tool
- buffered JSON replies or SSE replies, chosen per request from ``Accept``
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from http import HTTPStatus
from typing import Any, AsyncIterator, Callable, Iterable

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from toolserve.config import MCPServerConfig
from toolserve.mcp.capture import ResponseCapture, ResponseCaptureMiddleware
from toolserve.mcp.cors import CORSHeadersMiddleware
from toolserve.mcp.errors import MalformedRequestError
from toolserve.mcp.framing import (
    EVENT_STREAM_MEDIA_TYPE,
    TERMINAL_FRAME,
    encode_event,
    wants_event_stream,
)
from toolserve.mcp.protocol import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    PARSE_ERROR,
    SESSION_HEADER,
    JSONRPCMessage,
    MCPProtocolHandler,
    RequestScope,
    jsonrpc_error,
    parse_envelope,
)
from toolserve.tools import Tool, ToolRegistry

logger = logging.getLogger("toolserve.mcp")

# Status used when the client went away before a buffered reply was ready.
CLIENT_CLOSED_REQUEST = 499


def _first_id(messages: list[JSONRPCMessage]) -> Any:
    for message in messages:
        if message.id is not None:
            return message.id
    return None


class MCPServer:
    """
    MCP server that exposes ``ToolRegistry`` tools via FastAPI.

    The registry is frozen on construction; from then on the server only
    reads it, so requests need no locking.

    Usage::

        from toolserve.tools import ToolRegistry
        from toolserve.mcp import MCPServer

        registry = ToolRegistry()
        registry.register(greet)

        server = MCPServer(registry)
        server.run()  # starts uvicorn on port 8080

    Endpoints:
        ``POST /mcp``: JSON-RPC 2.0 endpoint for ``initialize``, ``tools/list``, ``tools/call``
        ``OPTIONS /mcp``: CORS preflight (when CORS is enabled)
        ``GET /health``: Health check

    Args:
        registry: ``ToolRegistry`` containing tools to expose.
        config: Server configuration.
        on_capture: Optional callback receiving each response's diagnostic
            capture once the response is finished.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        config: MCPServerConfig | None = None,
        on_capture: Callable[[ResponseCapture], Any] | None = None,
    ) -> None:
        self._registry = registry
        self._registry.freeze()
        self._config = config or MCPServerConfig()
        self._on_capture = on_capture
        self._protocol_handler = self._create_protocol_handler()
        self._app = self._create_app()

    @classmethod
    def from_tools(
        cls,
        tools: Iterable[Tool[Any, Any]],
        *,
        config: MCPServerConfig | None = None,
        on_capture: Callable[[ResponseCapture], Any] | None = None,
    ) -> "MCPServer":
        """Build an MCP server from an iterable of tools."""
        registry = ToolRegistry()
        registry.register_many(tools)
        return cls(registry, config=config, on_capture=on_capture)

    @property
    def app(self) -> FastAPI:
        """
        The FastAPI application instance.

        Use this for testing::

            from fastapi.testclient import TestClient
            client = TestClient(server.app)
        """
        return self._app

    @property
    def config(self) -> MCPServerConfig:
        """Server configuration."""
        return self._config

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def protocol(self) -> MCPProtocolHandler:
        return self._protocol_handler

    def _create_protocol_handler(self) -> MCPProtocolHandler:
        return MCPProtocolHandler(
            registry=self._registry,
            server_name=self._config.name,
            server_version=self._config.version,
            instructions=self._config.instructions,
        )

    # ''''''''''''''
    # App assembly
    # ''''''''''''''

    def _create_router(self) -> APIRouter:
        """Build an APIRouter containing MCP routes."""
        router = APIRouter()

        @router.get(self._config.health_path)
        async def health(request: Request) -> dict[str, str]:
            logger.debug(
                "Health check from %s",
                request.client.host if request.client else "unknown",
            )
            return {
                "status": "ok",
                "server": self._config.name,
                "version": self._config.version,
                "mcp_endpoint": self._config.mcp_path,
            }

        @router.post(self._config.mcp_path)
        async def mcp_endpoint(request: Request) -> Response:
            """Main JSON-RPC 2.0 endpoint for MCP."""
            return await self.handle_post(request)

        return router

    def _create_app(self) -> FastAPI:
        """Build the FastAPI application with MCP routes and middleware."""
        app = FastAPI(
            title=self._config.name,
            version=self._config.version,
            description="Model Context Protocol tool server",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )
        app.include_router(self._create_router())
        app.add_exception_handler(StarletteHTTPException, self._http_error)

        # Starlette wraps in reverse order: CORS ends up outermost.
        app.add_middleware(
            ResponseCaptureMiddleware,
            limit=self._config.capture_limit_bytes,
            on_complete=self._on_capture,
        )
        if self._config.enable_cors:
            app.add_middleware(
                CORSHeadersMiddleware,
                preflight_paths=(self._config.mcp_path, self._config.health_path),
            )
            logger.debug("CORS middleware enabled for %s", self._config.mcp_path)
        return app

    async def _http_error(
        self,
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        if exc.status_code == 404:
            logger.debug(
                "Unknown route accessed: %s %s from %s",
                request.method,
                request.url.path,
                request.client.host if request.client else "unknown",
            )
            body = {
                "error": "Not Found",
                "message": (
                    f"Path {request.url.path} not found. "
                    f"Try {self._config.health_path} or {self._config.mcp_path}"
                ),
            }
        else:
            body = {
                "error": HTTPStatus(exc.status_code).phrase,
                "message": str(exc.detail),
            }
        return JSONResponse(
            body,
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    # ''''''''''
    # Transport
    # ''''''''''

    async def handle_post(self, request: Request) -> Response:
        """Decode one POST body, dispatch it and frame the reply."""
        raw = await request.body()
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.info("Rejected request with invalid JSON body")
            return JSONResponse(
                jsonrpc_error(None, PARSE_ERROR, "Parse error"),
                status_code=400,
            )

        try:
            messages, is_batch = self._decode(payload)
        except MalformedRequestError as exc:
            logger.info("Rejected malformed request: %s", exc)
            return JSONResponse(
                jsonrpc_error(exc.request_id, exc.code, str(exc)),
                status_code=400,
            )

        scope = RequestScope(session_id=request.headers.get(SESSION_HEADER))
        if any(m.method == "initialize" for m in messages):
            scope.session_id = uuid.uuid4().hex
        headers = {SESSION_HEADER: scope.session_id} if scope.session_id else {}
        logger.debug(
            "POST %s request=%s messages=%d session=%s",
            self._config.mcp_path,
            scope.request_id,
            len(messages),
            scope.session_id,
        )

        if not any(m.expects_response for m in messages):
            try:
                await self._dispatch(messages, scope)
            except Exception:
                logger.exception(
                    "Internal fault handling notifications %s", scope.request_id
                )
                return JSONResponse(
                    jsonrpc_error(None, INTERNAL_ERROR, "Internal error"),
                    status_code=500,
                    headers=headers,
                )
            return Response(status_code=202, headers=headers)

        if wants_event_stream(
            request.headers.get("accept"),
            prefer=self._config.prefer_event_stream,
        ):
            return self._stream_response(messages, scope, headers)
        return await self._buffered_response(
            request, messages, scope, headers, is_batch=is_batch
        )

    def _decode(self, payload: Any) -> tuple[list[JSONRPCMessage], bool]:
        if isinstance(payload, list):
            if not self._config.allow_batch_requests:
                raise MalformedRequestError(
                    "Batch requests disabled", code=INVALID_REQUEST
                )
            if not payload:
                raise MalformedRequestError(
                    "Invalid Request: empty batch", code=INVALID_REQUEST
                )
            return [parse_envelope(item) for item in payload], True
        return [parse_envelope(payload)], False

    async def _dispatch(
        self,
        messages: list[JSONRPCMessage],
        scope: RequestScope,
    ) -> list[dict[str, Any]]:
        responses = []
        for message in messages:
            response = await self._protocol_handler.handle_message(message, scope)
            if response is not None:
                responses.append(response)
        return responses

    async def _buffered_response(
        self,
        request: Request,
        messages: list[JSONRPCMessage],
        scope: RequestScope,
        headers: dict[str, str],
        *,
        is_batch: bool,
    ) -> Response:
        task = asyncio.create_task(self._dispatch(messages, scope))
        watcher = asyncio.create_task(self._watch_disconnect(request, scope, task))
        try:
            responses = await task
        except asyncio.CancelledError:
            if not scope.cancel_event.is_set():
                raise
            logger.info(
                "Client disconnected before request %s completed", scope.request_id
            )
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        except Exception:
            logger.exception("Internal fault handling request %s", scope.request_id)
            return JSONResponse(
                jsonrpc_error(_first_id(messages), INTERNAL_ERROR, "Internal error"),
                status_code=500,
                headers=headers,
            )
        finally:
            watcher.cancel()

        if not responses:
            return Response(status_code=202, headers=headers)
        return JSONResponse(responses if is_batch else responses[0], headers=headers)

    async def _watch_disconnect(
        self,
        request: Request,
        scope: RequestScope,
        task: asyncio.Task[Any],
    ) -> None:
        while not task.done():
            if await request.is_disconnected():
                scope.cancel()
                task.cancel()
                return
            await asyncio.sleep(self._config.disconnect_poll_s)

    def _stream_response(
        self,
        messages: list[JSONRPCMessage],
        scope: RequestScope,
        headers: dict[str, str],
    ) -> StreamingResponse:
        queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()

        async def emit(message: dict[str, Any]) -> None:
            queue.put_nowait(message)

        scope.emit = emit

        async def produce() -> None:
            try:
                for message in messages:
                    response = await self._protocol_handler.handle_message(
                        message, scope
                    )
                    if response is not None:
                        queue.put_nowait(response)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Internal fault while streaming request %s", scope.request_id
                )
                queue.put_nowait(
                    jsonrpc_error(_first_id(messages), INTERNAL_ERROR, "Internal error")
                )
            finally:
                queue.put_nowait(None)

        async def event_stream() -> AsyncIterator[str]:
            task = asyncio.create_task(produce())
            try:
                while True:
                    item = await queue.get()
                    if item is None:
                        break
                    yield encode_event(item)
                yield TERMINAL_FRAME
            finally:
                if not task.done():
                    logger.info(
                        "Stream for request %s closed before completion",
                        scope.request_id,
                    )
                    scope.cancel()
                    task.cancel()

        return StreamingResponse(
            event_stream(),
            media_type=EVENT_STREAM_MEDIA_TYPE,
            headers={
                **headers,
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    def run(self, **kwargs: Any) -> None:
        """
        Start the MCP server using uvicorn.

        Args:
            **kwargs: Additional arguments passed to ``uvicorn.run()``.
        """
        try:
            import uvicorn
        except ImportError:
            raise ImportError(
                "uvicorn is required to run MCPServer. "
                "Install it with: pip install uvicorn"
            )

        uvicorn.run(
            self._app,
            host=kwargs.pop("host", self._config.host),
            port=kwargs.pop("port", self._config.port),
            **kwargs,
        )


def create_mcp_server(
    *,
    registry: ToolRegistry | None = None,
    tools: Iterable[Tool[Any, Any]] | None = None,
    config: MCPServerConfig | None = None,
    on_capture: Callable[[ResponseCapture], Any] | None = None,
) -> MCPServer:
    """
    Convenience constructor for MCP servers.

    Callers can pass either an existing registry or a list of tools.
    """
    if registry is not None and tools is not None:
        raise ValueError("Pass either 'registry' or 'tools', not both")
    if registry is not None:
        return MCPServer(registry, config=config, on_capture=on_capture)
    return MCPServer.from_tools(tools or [], config=config, on_capture=on_capture)
