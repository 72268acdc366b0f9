"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Protocol-layer helpers for MCP JSON-RPC request handling.

``MCPProtocolHandler`` is the dispatcher: it routes ``initialize``,
``tools/list`` and ``tools/call``, decodes tool arguments through the
registry and turns every tool outcome into a JSON-RPC message. It holds no
state between calls, so any number of requests may run through one handler
concurrently.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from toolserve.mcp.errors import ErrorKind, MalformedRequestError
from toolserve.tools import (
    ToolContext,
    ToolNotFoundError,
    ToolRegistry,
    ToolValidationError,
)
from toolserve.tools.base import ProgressSink

logger = logging.getLogger("toolserve.mcp")

MCP_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")
SESSION_HEADER = "Mcp-Session-Id"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def jsonrpc_response(id: Any, result: Any) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 success response."""
    return {"jsonrpc": "2.0", "id": id, "result": result}


def jsonrpc_error(
    id: Any,
    code: int,
    message: str,
    data: Any = None,
) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 error response."""
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": id, "error": error}


def jsonrpc_notification(method: str, params: dict[str, Any]) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 notification (no id)."""
    return {"jsonrpc": "2.0", "method": method, "params": params}


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class JSONRPCMessage(BaseModel):
    """One decoded inbound JSON-RPC message (request, notification or response)."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: Literal["2.0"]
    id: str | int | None = None
    method: str | None = None
    params: dict[str, Any] | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    @property
    def expects_response(self) -> bool:
        return self.method is not None and self.id is not None

    @property
    def is_client_response(self) -> bool:
        extra = self.model_extra or {}
        return self.method is None and ("result" in extra or "error" in extra)


def parse_envelope(payload: Any) -> JSONRPCMessage:
    """
    Validate one decoded JSON value as a JSON-RPC message.

    Raises ``MalformedRequestError`` naming the offending envelope field.
    """
    if not isinstance(payload, dict):
        raise MalformedRequestError(
            "Invalid Request: expected a JSON-RPC object",
            code=INVALID_REQUEST,
        )

    raw_id = payload.get("id")
    request_id = raw_id if isinstance(raw_id, (str, int)) else None
    try:
        message = JSONRPCMessage.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors(include_url=False)[0]
        loc = ".".join(str(part) for part in first.get("loc", ())) or "message"
        raise MalformedRequestError(
            f"Invalid Request: {loc}: {first.get('msg', 'invalid value')}",
            code=INVALID_REQUEST,
            request_id=request_id,
        ) from exc

    if message.method is None and not message.is_client_response:
        raise MalformedRequestError(
            "Invalid Request: missing method",
            code=INVALID_REQUEST,
            request_id=request_id,
        )
    if message.method is not None and not message.method:
        raise MalformedRequestError(
            "Invalid Request: empty method",
            code=INVALID_REQUEST,
            request_id=request_id,
        )
    return message


# ---------------------------------------------------------------------------
# Per-request state
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Session:
    """
    Protocol session established by ``initialize``.

    Sessions are exchanged through the ``Mcp-Session-Id`` header only; the
    server keeps no session store.
    """

    session_id: str | None
    protocol_version: str
    client_info: dict[str, Any] = field(default_factory=dict)
    capabilities: dict[str, Any] = field(default_factory=dict)


MessageSink = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass(slots=True)
class RequestScope:
    """
    State for one HTTP request, shared by the transport and the dispatcher.

    Attributes:
        request_id: Correlation id used in logs and tool contexts.
        session_id: Session id from the request header, or the one minted by
            the transport for an ``initialize`` request.
        cancel_event: Set when the client disconnects.
        emit: Sink for server-to-client messages sent before the response
            (progress notifications). Only set for streamed replies.
        session: Filled by ``initialize``.
    """

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    session_id: str | None = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    emit: MessageSink | None = None
    session: Session | None = None

    def cancel(self) -> None:
        self.cancel_event.set()


# ---------------------------------------------------------------------------
# Tool call outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ToolCallResult:
    """Exactly one per ``tools/call`` request."""

    id: Any
    output: Any = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    error_data: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    def to_message(self) -> dict[str, Any]:
        """Encode as a JSON-RPC response."""
        if self.error_kind in (ErrorKind.TOOL_NOT_FOUND, ErrorKind.INVALID_ARGUMENTS):
            return jsonrpc_error(
                self.id,
                INVALID_PARAMS,
                self.error_message or self.error_kind.value,
                {"kind": self.error_kind.value, **(self.error_data or {})},
            )
        if self.error_kind is not None:
            return jsonrpc_response(
                self.id,
                {
                    "content": [
                        {
                            "type": "text",
                            "text": self.error_message or "Tool execution failed",
                        }
                    ],
                    "isError": True,
                },
            )

        result: dict[str, Any] = {
            "content": [{"type": "text", "text": _output_text(self.output)}],
            "isError": False,
        }
        if isinstance(self.output, dict):
            result["structuredContent"] = self.output
        return jsonrpc_response(self.id, result)


def _output_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    if output is None:
        return ""
    return json.dumps(output, default=str)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class MCPProtocolHandler:
    """
    Handles MCP methods and JSON-RPC envelope validation.

    This class keeps protocol and tool-execution behavior independent from
    HTTP routing concerns so it can be reused by different transports.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        server_name: str,
        server_version: str,
        instructions: str | None = None,
    ) -> None:
        self._registry = registry
        self._server_name = server_name
        self._server_version = server_version
        self._instructions = instructions

    async def handle_message(
        self,
        message: JSONRPCMessage | dict[str, Any],
        scope: RequestScope | None = None,
    ) -> dict[str, Any] | None:
        """
        Route one JSON-RPC 2.0 message to the appropriate MCP method.

        Returns ``None`` for notifications and client responses. Envelope
        problems come back as ``INVALID_REQUEST`` errors so one bad batch
        entry does not spoil the others.
        """
        if not isinstance(message, JSONRPCMessage):
            try:
                message = parse_envelope(message)
            except MalformedRequestError as exc:
                return jsonrpc_error(exc.request_id, exc.code, str(exc))

        scope = scope or RequestScope()
        if message.method is None:
            logger.debug("Ignoring client response id=%s", message.id)
            return None

        method = message.method
        params = message.params or {}
        msg_id = message.id
        logger.debug(
            "Dispatching %s id=%s request=%s", method, msg_id, scope.request_id
        )

        if method == "initialize":
            result = self.handle_initialize(params, scope)
        elif method == "tools/list":
            result = self.handle_tools_list(params)
        elif method == "tools/call":
            outcome = await self.handle_tools_call(msg_id, params, scope)
            if message.is_notification:
                return None
            return outcome.to_message()
        elif method == "ping":
            result = {}
        elif method.startswith("notifications/"):
            logger.debug("Notification received: %s", method)
            return None
        else:
            logger.debug("Unknown method %s", method)
            if message.is_notification:
                return None
            return jsonrpc_error(
                msg_id,
                METHOD_NOT_FOUND,
                f"Method not found: {method}",
            )

        if message.is_notification:
            return None
        return jsonrpc_response(msg_id, result)

    def handle_initialize(
        self,
        params: dict[str, Any],
        scope: RequestScope | None = None,
    ) -> dict[str, Any]:
        """Handle ``initialize`` and return server capabilities."""
        requested = params.get("protocolVersion")
        negotiated = (
            requested
            if requested in SUPPORTED_PROTOCOL_VERSIONS
            else MCP_PROTOCOL_VERSION
        )
        client_info = params.get("clientInfo")
        capabilities = params.get("capabilities")
        session = Session(
            session_id=scope.session_id if scope is not None else None,
            protocol_version=negotiated,
            client_info=client_info if isinstance(client_info, dict) else {},
            capabilities=capabilities if isinstance(capabilities, dict) else {},
        )
        if scope is not None:
            scope.session = session
        logger.info(
            "Session initialized: client=%s protocol=%s (requested %s) session=%s",
            session.client_info.get("name", "unknown"),
            negotiated,
            requested,
            session.session_id,
        )
        return {
            "protocolVersion": negotiated,
            "capabilities": {
                "tools": {
                    "listChanged": False,
                },
            },
            "serverInfo": {
                "name": self._server_name,
                "version": self._server_version,
            },
            **({"instructions": self._instructions} if self._instructions else {}),
        }

    def handle_tools_list(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Handle ``tools/list`` and return MCP tool schemas."""
        _ = params
        tools = []
        for spec in self._registry.specs():
            entry: dict[str, Any] = {
                "name": spec.name,
                "description": spec.description,
                "inputSchema": {
                    "type": "object",
                    **(spec.parameters_schema or {}),
                },
            }
            if spec.output_schema:
                entry["outputSchema"] = spec.output_schema
            tools.append(entry)
        return {"tools": tools}

    async def handle_tools_call(
        self,
        msg_id: Any,
        params: dict[str, Any],
        scope: RequestScope,
    ) -> ToolCallResult:
        """Handle ``tools/call`` params and return the call outcome."""
        tool_name = params.get("name")
        if not isinstance(tool_name, str) or not tool_name:
            return ToolCallResult(
                id=msg_id,
                error_kind=ErrorKind.INVALID_ARGUMENTS,
                error_message="Missing 'name' in tools/call params",
                error_data={
                    "errors": [
                        {"field": "name", "message": "Field required", "type": "missing"}
                    ]
                },
            )

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return ToolCallResult(
                id=msg_id,
                error_kind=ErrorKind.INVALID_ARGUMENTS,
                error_message="'arguments' must be an object",
                error_data={
                    "tool": tool_name,
                    "errors": [
                        {
                            "field": "arguments",
                            "message": "Input should be an object",
                            "type": "dict_type",
                        }
                    ],
                },
            )

        meta = params.get("_meta")
        progress_token = meta.get("progressToken") if isinstance(meta, dict) else None
        return await self.call_tool(
            tool_name,
            arguments,
            scope=scope,
            msg_id=msg_id,
            progress_token=progress_token,
        )

    async def call_tool(
        self,
        tool_name: str,
        raw_arguments: dict[str, Any] | None,
        *,
        scope: RequestScope | None = None,
        msg_id: Any = None,
        progress_token: Any = None,
    ) -> ToolCallResult:
        """
        Resolve, decode, invoke and encode one tool call.

        Never raises for tool-level problems: unknown tools, bad arguments and
        handler failures all come back as a failed ``ToolCallResult``.
        """
        scope = scope or RequestScope()
        if self._registry.resolve(tool_name) is None:
            logger.warning("tools/call for unknown tool %s", tool_name)
            return self._not_found(msg_id, tool_name)

        ctx = ToolContext(
            request_id=scope.request_id,
            metadata={
                "source": "mcp",
                "tool_name": tool_name,
                "session_id": scope.session_id,
            },
            parent_cancel_event=scope.cancel_event,
            progress_sink=self._progress_sink(scope, progress_token),
        )
        try:
            result = await self._registry.call(tool_name, raw_arguments, ctx=ctx)
        except ToolNotFoundError:
            return self._not_found(msg_id, tool_name)
        except ToolValidationError as exc:
            logger.info("Rejected arguments for %s: %s", tool_name, exc)
            return ToolCallResult(
                id=msg_id,
                error_kind=ErrorKind.INVALID_ARGUMENTS,
                error_message=str(exc),
                error_data={"tool": tool_name, "errors": exc.errors},
            )

        if not result.success:
            logger.info("Tool %s failed: %s", tool_name, result.error_message)
            return ToolCallResult(
                id=msg_id,
                error_kind=ErrorKind.HANDLER_FAILED,
                error_message=result.error_message,
                error_data={"tool": tool_name},
            )

        logger.debug("Tool %s succeeded", tool_name)
        return ToolCallResult(id=msg_id, output=result.output)

    def _not_found(self, msg_id: Any, tool_name: str) -> ToolCallResult:
        return ToolCallResult(
            id=msg_id,
            error_kind=ErrorKind.TOOL_NOT_FOUND,
            error_message=str(ToolNotFoundError(tool_name)),
            error_data={"tool": tool_name},
        )

    def _progress_sink(
        self,
        scope: RequestScope,
        progress_token: Any,
    ) -> ProgressSink | None:
        emit = scope.emit
        if progress_token is None or emit is None:
            return None

        async def _sink(
            progress: float,
            total: float | None,
            message: str | None,
        ) -> None:
            params: dict[str, Any] = {
                "progressToken": progress_token,
                "progress": progress,
            }
            if total is not None:
                params["total"] = total
            if message:
                params["message"] = message
            await emit(jsonrpc_notification("notifications/progress", params))

        return _sink
