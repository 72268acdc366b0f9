"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Server configuration and port resolution.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class MCPServerConfig:
    """
    Configuration for one MCP server process.

    Attributes:
        name: Server name advertised during ``initialize`` and ``/health``.
        version: Server version string.
        host: Bind host for uvicorn.
        port: Bind port for uvicorn.
        instructions: Optional instructions returned from ``initialize``.
        enable_cors: Whether the cross-origin middleware wraps the app.
        mcp_path: JSON-RPC endpoint path.
        health_path: Health endpoint path.
        allow_batch_requests: Whether JSON-RPC batch arrays are accepted.
        prefer_event_stream: Reply with SSE when the client accepts both
            ``application/json`` and ``text/event-stream``.
        capture_limit_bytes: Cap on diagnostic body capture per response.
        disconnect_poll_s: How often buffered requests check for a client
            disconnect while a tool runs.
    """

    name: str = "toolserve"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8080
    instructions: str | None = None
    enable_cors: bool = True
    mcp_path: str = "/mcp"
    health_path: str = "/health"
    allow_batch_requests: bool = True
    prefer_event_stream: bool = True
    capture_limit_bytes: int = 1024
    disconnect_poll_s: float = 0.25


def resolve_port(
    explicit: str | int | None,
    *,
    env_var: str,
    default: int,
) -> int:
    """
    Resolve a listening port: explicit override, then ``env_var``, then
    ``default``. Empty strings count as unset.
    """
    raw: str | int | None = explicit
    source = "override"
    if raw is None or raw == "":
        raw = os.getenv(env_var)
        source = env_var
    if raw is None or raw == "":
        return default

    try:
        port = int(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid port from {source}: {raw!r}") from e
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range from {source}: {port}")
    return port
