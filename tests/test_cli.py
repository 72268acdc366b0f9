from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from toolserve import cli
from toolserve.mcp import MCPServer
from toolserve.servers import PROFILES, build_server


@pytest.fixture
def runs(monkeypatch):
    calls = []

    def fake_run(self, **kwargs):
        calls.append((self, kwargs))

    monkeypatch.setattr(MCPServer, "run", fake_run)
    return calls


def test_profiles_cover_the_three_servers():
    assert {k: (p.name, p.port_env, p.default_port) for k, p in PROFILES.items()} == {
        "moon": ("moon-phase-server", "MOON_SERVER_PORT", 8081),
        "quotes": ("quotes-server", "QUOTES_SERVER_PORT", 8082),
        "weather": ("weather-server", "WEATHER_SERVER_PORT", 8083),
    }


def test_build_server_uses_profile_and_env_port(monkeypatch):
    monkeypatch.setenv("QUOTES_SERVER_PORT", "9911")

    server = build_server("quotes")

    assert server.config.name == "quotes-server"
    assert server.config.port == 9911
    assert server.registry.names() == [
        "get_random_quote",
        "search_quotes",
        "list_categories",
    ]
    health = TestClient(server.app).get("/health").json()
    assert health["server"] == "quotes-server"
    assert health["version"] == "1.0.0"


def test_build_server_rejects_unknown_kind():
    with pytest.raises(ValueError, match="Unknown server"):
        build_server("tides")


def test_main_runs_selected_server_with_flags(runs, monkeypatch, caplog):
    monkeypatch.delenv("MOON_SERVER_PORT", raising=False)
    caplog.set_level(logging.INFO, logger="toolserve.cli")

    assert cli.main(["moon", "--port", "9300", "--no-cors"]) == 0

    server, kwargs = runs[0]
    assert server.config.port == 9300
    assert server.config.enable_cors is False
    assert server.registry.names() == ["get_moon_phase", "get_moon_calendar"]
    assert kwargs == {"log_level": "info"}
    assert "Available tools: get_moon_phase, get_moon_calendar" in caplog.text


def test_per_server_entry_point_uses_default_port(runs, monkeypatch):
    monkeypatch.delenv("WEATHER_SERVER_PORT", raising=False)

    assert cli.weather_main([]) == 0

    server, _ = runs[0]
    assert server.config.name == "weather-server"
    assert server.config.port == 8083
    assert server.config.enable_cors is True


def test_invalid_port_exits_with_error(runs):
    assert cli.quotes_main(["--port", "not-a-port"]) == 2
    assert runs == []


def test_subcommand_is_required():
    with pytest.raises(SystemExit):
        cli.main([])
