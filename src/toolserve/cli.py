"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Command line entry points for the bundled MCP servers.

    toolserve moon --port 9000
    quotes-server --no-cors
"""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from toolserve.mcp import MCPServer
from toolserve.servers import PROFILES, ServerProfile, build_server

logger = logging.getLogger("toolserve.cli")

_BANNER_RULE = "=" * 40
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)


def _add_server_arguments(parser: argparse.ArgumentParser, profile: ServerProfile) -> None:
    parser.add_argument(
        "--port",
        type=str,
        default=None,
        help=f"HTTP port to listen on (overrides {profile.port_env} env var)",
    )
    parser.add_argument("--host", type=str, default="0.0.0.0")
    parser.add_argument(
        "--cors",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Enable CORS middleware (needed for browser-based clients)",
    )
    parser.add_argument(
        "--log-level",
        choices=("debug", "info", "warning", "error"),
        default="info",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolserve", description="Run a bundled MCP tool server"
    )
    sub = parser.add_subparsers(dest="server", required=True)
    for kind, profile in PROFILES.items():
        _add_server_arguments(sub.add_parser(kind, help=profile.title), profile)
    return parser


def log_banner(server: MCPServer, profile: ServerProfile) -> None:
    config = server.config
    addr = f"{config.host}:{config.port}"
    logger.info(_BANNER_RULE)
    logger.info("%s starting...", profile.title)
    logger.info(_BANNER_RULE)
    logger.info("Address: %s", addr)
    logger.info("Health endpoint: http://localhost:%d%s", config.port, config.health_path)
    logger.info("MCP endpoint: http://localhost:%d%s", config.port, config.mcp_path)
    logger.info("CORS: %s", "enabled" if config.enable_cors else "disabled")
    logger.info("Available tools: %s", ", ".join(server.registry.names()))
    logger.info(_BANNER_RULE)


def serve(args: argparse.Namespace) -> int:
    configure_logging(args.log_level)
    profile = PROFILES[args.server]
    try:
        server = build_server(
            args.server, port=args.port, host=args.host, enable_cors=args.cors
        )
    except ValueError as e:
        logger.error("%s", e)
        return 2
    log_banner(server, profile)
    server.run(log_level=args.log_level)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return serve(args)


def _single(kind: str, argv: Sequence[str] | None) -> int:
    profile = PROFILES[kind]
    parser = argparse.ArgumentParser(prog=profile.name, description=profile.title)
    _add_server_arguments(parser, profile)
    args = parser.parse_args(argv)
    args.server = kind
    return serve(args)


def moon_main(argv: Sequence[str] | None = None) -> int:
    return _single("moon", argv)


def quotes_main(argv: Sequence[str] | None = None) -> int:
    return _single("quotes", argv)


def weather_main(argv: Sequence[str] | None = None) -> int:
    return _single("weather", argv)


if __name__ == "__main__":
    raise SystemExit(main())
