"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Moon phase tools.

Phases are derived from a fixed mean synodic month counted from a known new
moon; the result is an approximation good to about a day, with no
astronomical ephemeris involved.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator

from toolserve.tools import Tool, ToolContext, tool

logger = logging.getLogger("toolserve.servers.moon")

SYNODIC_MONTH = 29.53058867
KNOWN_NEW_MOON = datetime(2000, 1, 6, 18, 14, tzinfo=timezone.utc)
DATE_FORMAT = "%Y-%m-%d"

# (upper bound of cycle position, phase name, emoji)
_PHASES: tuple[tuple[float, str, str], ...] = (
    (0.0625, "New Moon", "\U0001F311"),
    (0.1875, "Waxing Crescent", "\U0001F312"),
    (0.3125, "First Quarter", "\U0001F313"),
    (0.4375, "Waxing Gibbous", "\U0001F314"),
    (0.5625, "Full Moon", "\U0001F315"),
    (0.6875, "Waning Gibbous", "\U0001F316"),
    (0.8125, "Last Quarter", "\U0001F317"),
    (0.9375, "Waning Crescent", "\U0001F318"),
    (1.0, "New Moon", "\U0001F311"),
)

_CALENDAR_PHASES = {
    "New Moon": "new_moon",
    "First Quarter": "first_quarter",
    "Full Moon": "full_moon",
    "Last Quarter": "last_quarter",
}


class _MoonPhaseArgs(BaseModel):
    date: str | None = Field(
        default=None,
        description="date in YYYY-MM-DD format, defaults to today",
    )

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str | None) -> str | None:
        if value in (None, ""):
            return None
        try:
            datetime.strptime(value, DATE_FORMAT)
        except ValueError as e:
            raise ValueError("invalid date format, use YYYY-MM-DD") from e
        return value


class MoonPhase(BaseModel):
    date: str
    phase: str
    illumination: float
    days_until_full: int
    emoji: str


class _MoonCalendarArgs(BaseModel):
    month: int = Field(ge=1, le=12, description="month number (1-12)")
    year: int = Field(ge=1900, le=2100, description="year (e.g., 2025)")


class MoonCalendar(BaseModel):
    month: int
    year: int
    new_moon: str = ""
    first_quarter: str = ""
    full_moon: str = ""
    last_quarter: str = ""


def cycle_position(moment: datetime) -> float:
    """Fraction of the current lunation elapsed at ``moment``, in ``[0, 1)``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    days_since = (moment - KNOWN_NEW_MOON).total_seconds() / 86400
    cycles = days_since / SYNODIC_MONTH
    position = cycles - int(cycles)
    if position < 0:
        position += 1
    return position


def phase_at(moment: datetime) -> tuple[str, float, str]:
    """Return ``(phase name, illumination percent, emoji)`` at ``moment``."""
    position = cycle_position(moment)
    if position < 0.5:
        illumination = position * 2
    else:
        illumination = (1 - position) * 2

    for upper, name, emoji in _PHASES:
        if position < upper:
            return name, illumination * 100, emoji
    name, emoji = _PHASES[-1][1], _PHASES[-1][2]
    return name, illumination * 100, emoji


def days_until_full(moment: datetime) -> int:
    days = (0.5 - cycle_position(moment)) * SYNODIC_MONTH
    if days < 0:
        days += SYNODIC_MONTH
    return int(days)


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=timezone.utc)


def moon_phase_for(moment: datetime) -> MoonPhase:
    phase, illumination, emoji = phase_at(moment)
    return MoonPhase(
        date=moment.strftime(DATE_FORMAT),
        phase=phase,
        illumination=illumination,
        days_until_full=days_until_full(moment),
        emoji=emoji,
    )


def build_moon_tools() -> list[Tool[Any, Any]]:
    """
    Construct the moon phase tool set.

    Tools produced:
      - `get_moon_phase`: phase, illumination and days to full moon for a date
      - `get_moon_calendar`: first day of each principal phase in a month
    """

    @tool(
        args_model=_MoonPhaseArgs,
        name="get_moon_phase",
        output_model=MoonPhase,
        description=(
            "Get the current moon phase for a specific date. Returns phase name, "
            "illumination percentage, days until full moon, and emoji."
        ),
    )
    def get_moon_phase(args: _MoonPhaseArgs) -> MoonPhase:
        if args.date is None:
            moment = datetime.now(timezone.utc)
            logger.debug("No date provided, using current time: %s", moment.date())
        else:
            moment = _midnight(datetime.strptime(args.date, DATE_FORMAT).date())

        result = moon_phase_for(moment)
        logger.debug(
            "Moon phase for %s: phase=%s illumination=%.2f%% days_until_full=%d",
            result.date,
            result.phase,
            result.illumination,
            result.days_until_full,
        )
        return result

    @tool(
        args_model=_MoonCalendarArgs,
        name="get_moon_calendar",
        output_model=MoonCalendar,
        description=(
            "Get the moon phase calendar for a specific month, showing dates of "
            "new moon, first quarter, full moon, and last quarter."
        ),
    )
    async def get_moon_calendar(
        args: _MoonCalendarArgs, ctx: ToolContext
    ) -> MoonCalendar:
        result = MoonCalendar(month=args.month, year=args.year)
        days_in_month = calendar.monthrange(args.year, args.month)[1]
        first = date(args.year, args.month, 1)

        for offset in range(days_in_month):
            ctx.raise_if_cancelled()
            day = first + timedelta(days=offset)
            phase, _, _ = phase_at(_midnight(day))
            previous, _, _ = phase_at(_midnight(day - timedelta(days=1)))
            field_name = _CALENDAR_PHASES.get(phase)
            if phase != previous and field_name and not getattr(result, field_name):
                setattr(result, field_name, day.strftime(DATE_FORMAT))
                logger.debug("Found %s on %s", phase, day)
            await ctx.report_progress(
                offset + 1, days_in_month, f"scanned {day.strftime(DATE_FORMAT)}"
            )

        return result

    return [get_moon_phase, get_moon_calendar]
