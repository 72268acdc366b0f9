"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

MCP server package.

Contains HTTP app wiring, middleware and JSON-RPC protocol handling.
"""

from .capture import CaptureState, ResponseCapture, ResponseCaptureMiddleware
from .cors import CORSHeadersMiddleware
from .errors import ErrorKind, MalformedRequestError, MCPError
from .protocol import (
    MCP_PROTOCOL_VERSION,
    SESSION_HEADER,
    MCPProtocolHandler,
    RequestScope,
    Session,
    ToolCallResult,
)
from .runtime import MCPServer, create_mcp_server

__all__ = [
    "MCPServer",
    "create_mcp_server",
    "MCPProtocolHandler",
    "RequestScope",
    "Session",
    "ToolCallResult",
    "MCP_PROTOCOL_VERSION",
    "SESSION_HEADER",
    "ErrorKind",
    "MCPError",
    "MalformedRequestError",
    "CORSHeadersMiddleware",
    "CaptureState",
    "ResponseCapture",
    "ResponseCaptureMiddleware",
]
