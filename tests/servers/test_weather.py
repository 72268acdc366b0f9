from __future__ import annotations

import asyncio
import json
from urllib.parse import parse_qs, urlsplit

import pytest

from toolserve.mcp import MCPProtocolHandler
from toolserve.servers.upstream import UpstreamClient, UpstreamError
from toolserve.servers.weather import (
    OPEN_METEO_URL,
    CurrentWeather,
    DailyForecast,
    Forecast,
    build_weather_tools,
    current_from_payload,
    describe_weather_code,
)
from toolserve.tools import ToolRegistry, ToolValidationError

CURRENT_PAYLOAD = {
    "latitude": 52.52,
    "longitude": 13.419998,
    "current_weather": {
        "temperature": 12.3,
        "windspeed": 9.7,
        "winddirection": 250,
        "weathercode": 3,
        "is_day": 1,
        "time": "2026-10-19T12:00",
    },
}

FORECAST_PAYLOAD = {
    "latitude": 52.52,
    "longitude": 13.419998,
    "daily": {
        "time": ["2026-10-19", "2026-10-20", "2026-10-21"],
        "temperature_2m_max": [14.1, 12.0, 11.5],
        "temperature_2m_min": [6.2, 5.0, 4.4],
        "weathercode": [61, 3, 42],
        "precipitation_sum": [2.5, 0.0, 0.1],
    },
}


def run_async(coro):
    return asyncio.run(coro)


class _FakeFetch:
    def __init__(self, payload=None, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.calls: list[tuple[str, float]] = []

    def __call__(self, url: str, timeout_s: float) -> bytes:
        self.calls.append((url, timeout_s))
        if self.error is not None:
            raise self.error
        return json.dumps(self.payload).encode()

    def query(self) -> dict[str, str]:
        url, _ = self.calls[-1]
        parts = urlsplit(url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == OPEN_METEO_URL
        return {k: v[0] for k, v in parse_qs(parts.query).items()}


def _tools(fetch):
    return {t.spec.name: t for t in build_weather_tools(client=UpstreamClient(fetch=fetch))}


def test_current_weather_maps_open_meteo_fields():
    fetch = _FakeFetch(CURRENT_PAYLOAD)

    result = run_async(
        _tools(fetch)["get_current_weather"].call({"latitude": 52.52, "longitude": 13.41})
    )

    assert result.output == {
        "latitude": 52.52,
        "longitude": 13.419998,
        "temperature_celsius": 12.3,
        "wind_speed_kmh": 9.7,
        "wind_direction_degrees": 250,
        "weather_code": 3,
        "description": "Overcast",
        "is_day": True,
        "time": "2026-10-19T12:00",
    }
    query = fetch.query()
    assert query["latitude"] == "52.520000"
    assert query["current_weather"] == "true"
    assert fetch.calls[0][1] == 10.0


def test_forecast_builds_daily_entries_with_unknown_codes():
    fetch = _FakeFetch(FORECAST_PAYLOAD)

    result = run_async(
        _tools(fetch)["get_forecast"].call({"latitude": 52.52, "longitude": 13.41})
    )

    daily = result.output["daily"]
    assert [d["date"] for d in daily] == ["2026-10-19", "2026-10-20", "2026-10-21"]
    assert daily[0]["description"] == "Slight rain"
    assert daily[0]["precipitation_mm"] == 2.5
    assert daily[2]["description"] == "Unknown"
    query = fetch.query()
    assert query["forecast_days"] == "3"
    assert query["timezone"] == "auto"
    assert query["daily"] == (
        "temperature_2m_max,temperature_2m_min,weathercode,precipitation_sum"
    )


@pytest.mark.parametrize(("days", "expected"), [(0, "3"), (1, "1"), (7, "7"), (30, "7")])
def test_forecast_days_are_clamped(days, expected):
    fetch = _FakeFetch(FORECAST_PAYLOAD)

    run_async(
        _tools(fetch)["get_forecast"].call({"latitude": 0, "longitude": 0, "days": days})
    )

    assert fetch.query()["forecast_days"] == expected


def test_forecast_stops_at_shortest_series():
    payload = json.loads(json.dumps(FORECAST_PAYLOAD))
    payload["daily"]["temperature_2m_max"] = [14.1]
    fetch = _FakeFetch(payload)

    result = run_async(_tools(fetch)["get_forecast"].call({"latitude": 0, "longitude": 0}))

    assert len(result.output["daily"]) == 1


@pytest.mark.parametrize(
    ("args", "field"),
    [
        ({"latitude": 91, "longitude": 0}, "latitude"),
        ({"latitude": 0, "longitude": -181}, "longitude"),
        ({"longitude": 0}, "latitude"),
    ],
)
def test_coordinates_are_validated_before_any_request(args, field):
    fetch = _FakeFetch(CURRENT_PAYLOAD)

    with pytest.raises(ToolValidationError) as info:
        run_async(_tools(fetch)["get_current_weather"].call(args))

    assert info.value.fields == [field]
    assert fetch.calls == []


def test_upstream_failure_is_handler_failure():
    fetch = _FakeFetch(error=UpstreamError("API returned status 500"))

    result = run_async(
        _tools(fetch)["get_current_weather"].call({"latitude": 1, "longitude": 1})
    )

    assert not result.success
    assert result.error_message == "failed to fetch weather data: API returned status 500"


def test_unexpected_payload_is_handler_failure():
    fetch = _FakeFetch({"latitude": 1})

    result = run_async(_tools(fetch)["get_forecast"].call({"latitude": 1, "longitude": 1}))

    assert not result.success
    assert result.error_message.startswith("failed to parse API response")


def test_describe_weather_code():
    assert describe_weather_code(0) == "Clear sky"
    assert describe_weather_code(99) == "Thunderstorm with heavy hail"
    assert describe_weather_code(1234) == "Unknown"


def test_weather_outputs_decode_back_to_equal_models():
    registry = ToolRegistry()
    client = UpstreamClient(fetch=_FakeFetch(FORECAST_PAYLOAD))
    registry.register_many(build_weather_tools(client=client))
    handler = MCPProtocolHandler(
        registry=registry, server_name="weather-server", server_version="1.0.0"
    )

    outcome = run_async(
        handler.call_tool("get_forecast", {"latitude": 52.52, "longitude": 13.41, "days": 2})
    )

    assert Forecast.model_validate(outcome.output) == Forecast(
        latitude=52.52,
        longitude=13.419998,
        daily=[
            DailyForecast(
                date="2026-10-19",
                temp_max_celsius=14.1,
                temp_min_celsius=6.2,
                weather_code=61,
                description="Slight rain",
                precipitation_mm=2.5,
            ),
            DailyForecast(
                date="2026-10-20",
                temp_max_celsius=12.0,
                temp_min_celsius=5.0,
                weather_code=3,
                description="Overcast",
                precipitation_mm=0.0,
            ),
            DailyForecast(
                date="2026-10-21",
                temp_max_celsius=11.5,
                temp_min_celsius=4.4,
                weather_code=42,
                description="Unknown",
                precipitation_mm=0.1,
            ),
        ],
    )


def test_current_weather_output_decodes_back_to_equal_model():
    tool = _tools(_FakeFetch(CURRENT_PAYLOAD))["get_current_weather"]

    result = run_async(tool.call({"latitude": 52.52, "longitude": 13.41}))

    assert CurrentWeather.model_validate(result.output) == current_from_payload(
        CURRENT_PAYLOAD
    )
