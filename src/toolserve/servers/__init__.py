"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Ready-made MCP servers: moon phases, quotes and weather.

Each profile names the server, the environment variable carrying its port
and the factory producing its tools.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from toolserve.config import MCPServerConfig, resolve_port
from toolserve.mcp import MCPServer, create_mcp_server
from toolserve.tools import Tool

from .moon import build_moon_tools
from .quotes import build_quote_tools
from .upstream import UpstreamClient, UpstreamError
from .weather import build_weather_tools


@dataclass(frozen=True, slots=True)
class ServerProfile:
    kind: str
    name: str
    title: str
    port_env: str
    default_port: int
    build_tools: Callable[..., list[Tool[Any, Any]]]
    version: str = "1.0.0"


PROFILES: dict[str, ServerProfile] = {
    "moon": ServerProfile(
        kind="moon",
        name="moon-phase-server",
        title="Moon Phase MCP Server",
        port_env="MOON_SERVER_PORT",
        default_port=8081,
        build_tools=build_moon_tools,
    ),
    "quotes": ServerProfile(
        kind="quotes",
        name="quotes-server",
        title="Quotes MCP Server",
        port_env="QUOTES_SERVER_PORT",
        default_port=8082,
        build_tools=build_quote_tools,
    ),
    "weather": ServerProfile(
        kind="weather",
        name="weather-server",
        title="Weather MCP Server",
        port_env="WEATHER_SERVER_PORT",
        default_port=8083,
        build_tools=build_weather_tools,
    ),
}


def get_profile(kind: str) -> ServerProfile:
    try:
        return PROFILES[kind]
    except KeyError:
        raise ValueError(
            f"Unknown server '{kind}', expected one of: {', '.join(PROFILES)}"
        ) from None


def build_server(
    kind: str,
    *,
    port: str | int | None = None,
    host: str = "0.0.0.0",
    enable_cors: bool = True,
    **tool_kwargs: Any,
) -> MCPServer:
    """
    Build the MCP server for ``kind``.

    ``tool_kwargs`` go to the profile's tool factory, e.g. ``client=`` to
    inject an ``UpstreamClient`` for the quote and weather servers.
    """
    profile = get_profile(kind)
    config = MCPServerConfig(
        name=profile.name,
        version=profile.version,
        host=host,
        port=resolve_port(port, env_var=profile.port_env, default=profile.default_port),
        enable_cors=enable_cors,
    )
    return create_mcp_server(tools=profile.build_tools(**tool_kwargs), config=config)


__all__ = [
    "PROFILES",
    "ServerProfile",
    "get_profile",
    "build_server",
    "build_moon_tools",
    "build_quote_tools",
    "build_weather_tools",
    "UpstreamClient",
    "UpstreamError",
]
