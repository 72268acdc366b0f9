"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy shared by the dispatcher and the HTTP transport.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification attached to every failed exchange."""

    TOOL_NOT_FOUND = "tool_not_found"
    INVALID_ARGUMENTS = "invalid_arguments"
    HANDLER_FAILED = "handler_failed"
    MALFORMED_REQUEST = "malformed_request"
    INTERNAL_FAULT = "internal_fault"


class MCPError(RuntimeError):
    """Base MCP server error."""


class MalformedRequestError(MCPError):
    """
    Raised when an inbound body is not a usable JSON-RPC envelope.

    The transport answers these with HTTP 400 before anything is dispatched.
    """

    kind = ErrorKind.MALFORMED_REQUEST

    def __init__(self, message: str, *, code: int, request_id: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.request_id = request_id
