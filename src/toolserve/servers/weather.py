"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Weather tools backed by the Open-Meteo forecast API.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from toolserve.tools import Tool, ToolContext, ToolExecutionError, tool

from .upstream import UpstreamClient, UpstreamError

logger = logging.getLogger("toolserve.servers.weather")

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_TIMEOUT_S = 10.0

DEFAULT_FORECAST_DAYS = 3
MAX_FORECAST_DAYS = 7

WEATHER_CODES: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def describe_weather_code(code: int) -> str:
    return WEATHER_CODES.get(code, "Unknown")


class _CurrentWeatherArgs(BaseModel):
    latitude: float = Field(ge=-90, le=90, description="latitude coordinate (-90 to 90)")
    longitude: float = Field(
        ge=-180, le=180, description="longitude coordinate (-180 to 180)"
    )


class _ForecastArgs(_CurrentWeatherArgs):
    days: int = Field(
        default=DEFAULT_FORECAST_DAYS,
        description="number of forecast days (1-7, default 3)",
    )

    @field_validator("days")
    @classmethod
    def _clamp_days(cls, value: int) -> int:
        if value <= 0:
            return DEFAULT_FORECAST_DAYS
        return min(value, MAX_FORECAST_DAYS)


class CurrentWeather(BaseModel):
    latitude: float
    longitude: float
    temperature_celsius: float
    wind_speed_kmh: float
    wind_direction_degrees: int
    weather_code: int
    description: str
    is_day: bool
    time: str


class DailyForecast(BaseModel):
    date: str
    temp_max_celsius: float
    temp_min_celsius: float
    weather_code: int
    description: str
    precipitation_mm: float


class Forecast(BaseModel):
    latitude: float
    longitude: float
    daily: list[DailyForecast]


# ''''''''''''''''''''''
# Open-Meteo payloads
# ''''''''''''''''''''''


class _OpenMeteoCurrent(BaseModel):
    temperature: float
    windspeed: float
    winddirection: float
    weathercode: int
    is_day: int = 1
    time: str = ""


class _OpenMeteoCurrentResponse(BaseModel):
    latitude: float
    longitude: float
    current_weather: _OpenMeteoCurrent


class _OpenMeteoDaily(BaseModel):
    time: list[str] = Field(default_factory=list)
    temperature_2m_max: list[float | None] = Field(default_factory=list)
    temperature_2m_min: list[float | None] = Field(default_factory=list)
    weathercode: list[int | None] = Field(default_factory=list)
    precipitation_sum: list[float | None] = Field(default_factory=list)


class _OpenMeteoForecastResponse(BaseModel):
    latitude: float
    longitude: float
    daily: _OpenMeteoDaily = Field(default_factory=_OpenMeteoDaily)


def _at(values: list[Any], index: int, default: Any) -> Any:
    if index < len(values) and values[index] is not None:
        return values[index]
    return default


def current_from_payload(payload: Any) -> CurrentWeather:
    data = _OpenMeteoCurrentResponse.model_validate(payload)
    cw = data.current_weather
    return CurrentWeather(
        latitude=data.latitude,
        longitude=data.longitude,
        temperature_celsius=cw.temperature,
        wind_speed_kmh=cw.windspeed,
        wind_direction_degrees=int(cw.winddirection),
        weather_code=cw.weathercode,
        description=describe_weather_code(cw.weathercode),
        is_day=cw.is_day == 1,
        time=cw.time,
    )


def forecast_from_payload(payload: Any) -> Forecast:
    data = _OpenMeteoForecastResponse.model_validate(payload)
    daily = data.daily
    days: list[DailyForecast] = []
    for i, day in enumerate(daily.time):
        # Truncated series end the forecast.
        if i >= len(daily.temperature_2m_max):
            break
        code = int(_at(daily.weathercode, i, -1))
        days.append(
            DailyForecast(
                date=day,
                temp_max_celsius=_at(daily.temperature_2m_max, i, 0.0),
                temp_min_celsius=_at(daily.temperature_2m_min, i, 0.0),
                weather_code=code,
                description=describe_weather_code(code),
                precipitation_mm=_at(daily.precipitation_sum, i, 0.0),
            )
        )
    return Forecast(latitude=data.latitude, longitude=data.longitude, daily=days)


def build_weather_tools(
    *, client: UpstreamClient | None = None
) -> list[Tool[Any, Any]]:
    """
    Construct the weather tool set.

    Tools produced:
      - `get_current_weather`: current conditions at a coordinate
      - `get_forecast`: daily forecast for up to seven days
    """
    upstream = client or UpstreamClient()

    async def _fetch(params: dict[str, Any], ctx: ToolContext, what: str) -> Any:
        try:
            return await upstream.get_json(
                OPEN_METEO_URL,
                params=params,
                timeout_s=OPEN_METEO_TIMEOUT_S,
                ctx=ctx,
            )
        except UpstreamError as e:
            logger.warning("Failed to fetch %s data: %s", what, e)
            raise ToolExecutionError(f"failed to fetch {what} data: {e}") from e

    @tool(
        args_model=_CurrentWeatherArgs,
        name="get_current_weather",
        output_model=CurrentWeather,
        description=(
            "Get current weather conditions for a location specified by latitude "
            "and longitude coordinates."
        ),
    )
    async def get_current_weather(
        args: _CurrentWeatherArgs, ctx: ToolContext
    ) -> CurrentWeather:
        payload = await _fetch(
            {
                "latitude": f"{args.latitude:f}",
                "longitude": f"{args.longitude:f}",
                "current_weather": "true",
            },
            ctx,
            "weather",
        )
        try:
            result = current_from_payload(payload)
        except ValidationError as e:
            raise ToolExecutionError(f"failed to parse API response: {e}") from e
        logger.debug(
            "Weather at %s,%s: %.1fC %s",
            result.latitude,
            result.longitude,
            result.temperature_celsius,
            result.description,
        )
        return result

    @tool(
        args_model=_ForecastArgs,
        name="get_forecast",
        output_model=Forecast,
        description=(
            "Get weather forecast for a location. Returns daily forecasts including "
            "temperature range, weather conditions, and precipitation."
        ),
    )
    async def get_forecast(args: _ForecastArgs, ctx: ToolContext) -> Forecast:
        payload = await _fetch(
            {
                "latitude": f"{args.latitude:f}",
                "longitude": f"{args.longitude:f}",
                "daily": "temperature_2m_max,temperature_2m_min,weathercode,precipitation_sum",
                "forecast_days": args.days,
                "timezone": "auto",
            },
            ctx,
            "forecast",
        )
        try:
            result = forecast_from_payload(payload)
        except ValidationError as e:
            raise ToolExecutionError(f"failed to parse API response: {e}") from e
        logger.debug("Forecast retrieved: %d days of data", len(result.daily))
        return result

    return [get_current_weather, get_forecast]
