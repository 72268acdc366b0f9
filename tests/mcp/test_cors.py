from __future__ import annotations

from fastapi.testclient import TestClient
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from toolserve.config import MCPServerConfig
from toolserve.mcp import CORSHeadersMiddleware, create_mcp_server

EXPECTED = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "GET, POST, OPTIONS",
    "access-control-allow-headers": "Content-Type, Authorization",
    "access-control-expose-headers": "Mcp-Session-Id, Content-Type, Cache-Control",
}


def _assert_cors(headers) -> None:
    for key, value in EXPECTED.items():
        assert headers[key] == value


def test_preflight_on_served_paths_is_empty_200_with_cors_headers():
    client = TestClient(create_mcp_server(tools=[]).app)

    for path in ("/mcp", "/health"):
        response = client.options(
            path,
            headers={
                "Origin": "http://localhost:6274",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 200
        assert response.content == b""
        _assert_cors(response.headers)


def test_cors_headers_on_json_stream_and_error_responses():
    client = TestClient(create_mcp_server(tools=[]).app)
    ping = {"jsonrpc": "2.0", "id": 1, "method": "ping"}

    _assert_cors(client.get("/health").headers)
    _assert_cors(client.get("/missing").headers)
    _assert_cors(client.post("/mcp", content=b"{").headers)
    _assert_cors(
        client.post("/mcp", json=ping, headers={"Accept": "text/event-stream"}).headers
    )


def test_cors_disabled_leaves_responses_untouched():
    server = create_mcp_server(tools=[], config=MCPServerConfig(enable_cors=False))
    client = TestClient(server.app)

    response = client.get("/health")

    assert "access-control-allow-origin" not in response.headers


def test_inner_headers_are_never_overwritten():
    async def homepage(request):
        return PlainTextResponse(
            "hi", headers={"Access-Control-Allow-Origin": "https://example.com"}
        )

    app = CORSHeadersMiddleware(
        Starlette(routes=[Route("/", homepage)]), preflight_paths=("/",)
    )
    response = TestClient(app).get("/")

    assert response.headers["access-control-allow-origin"] == "https://example.com"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert response.text == "hi"


def test_options_on_other_paths_is_forwarded():
    async def options(request):
        return PlainTextResponse("inner")

    app = CORSHeadersMiddleware(
        Starlette(routes=[Route("/other", options, methods=["OPTIONS"])]),
        preflight_paths=("/mcp",),
    )
    response = TestClient(app).options("/other")

    assert response.text == "inner"
    _assert_cors(response.headers)
