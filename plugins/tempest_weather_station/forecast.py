"""Pure helpers for shaping Tempest forecast payloads."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

TEMPEST_ICON_URL = "https://tempestwx.com/images/Updated/{icon}.svg"
NATIVE_ICONS = {
    "clear-day": "wi-day-sunny.svg",
    "clear-night": "wi-night-clear.svg",
}


def to_fahrenheit(celsius: float) -> float:
    return (celsius * 9 / 5) + 32


def smart_round_in_desired_unit(temp: float | None, units: str) -> float | int | None:
    """Metric values pass through; imperial ones become whole Fahrenheit degrees (half away from zero)."""
    if temp is None or units == "c":
        return temp
    return int(Decimal(str(to_fahrenheit(temp))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def local_date(timestamp: float, zone: tzinfo) -> date:
    return datetime.fromtimestamp(timestamp, zone).date()


def day_index(daily: Sequence[Mapping[str, Any]], day: date, zone: tzinfo) -> int | None:
    """Index of the daily forecast whose ``day_start_local`` falls on ``day``."""
    for index, entry in enumerate(daily):
        start = entry.get("day_start_local")
        if start is not None and local_date(start, zone) == day:
            return index
    return None


def max_uv(hourly: Iterable[Mapping[str, Any]], start: datetime, end: datetime) -> float | int | None:
    """Highest hourly UV sample between ``start`` and ``end``; 5.0 -> 5, 5.42 -> 5.4."""
    samples = [
        hour["uv"]
        for hour in hourly
        if hour.get("uv") is not None
        and hour.get("time") is not None
        and start.timestamp() <= hour["time"] <= end.timestamp()
    ]
    if not samples:
        return None
    highest = max(samples)
    if int(highest) == highest:
        return int(highest)
    return round(highest, 1)


def icon_url(icon: str | None, base_url: str) -> str:
    """Swap two Tempest icons for the locally hosted ones users preferred."""
    native = NATIVE_ICONS.get(icon or "")
    if native:
        return f"{base_url}/images/plugins/weather/{native}"
    return TEMPEST_ICON_URL.format(icon=icon)


def clock(timestamp: float | None, zone: tzinfo) -> str:
    if not timestamp:
        return ""
    return datetime.fromtimestamp(timestamp, zone).strftime("%H:%M")
