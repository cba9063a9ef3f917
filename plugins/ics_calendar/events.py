"""Calendar entries, recurrence occurrences and their normalization.

A ``CalendarEntry`` is one VEVENT as parsed from a feed. An ``Occurrence``
is one expanded instance of a recurring entry: it owns its start/end and
reads summary, description and status from its parent entry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

from icalendar.cal import Component

DEFAULT_DURATION = timedelta(hours=1)
DEDUP_FIELDS = ("summary", "description", "status", "date_time", "all_day", "start_full", "end_full", "start", "end")

_TAG = re.compile(r"<[^>]*>")


@dataclass
class CalendarEntry:
    uid: str
    summary: str | None
    description: str | None
    status: str
    start: date | datetime | None
    end: date | datetime | None
    calname: str
    rrules: list[str] = field(default_factory=list)
    exdates: list[date | datetime] = field(default_factory=list)
    rdates: list[date | datetime] = field(default_factory=list)
    recurrence_id: date | datetime | None = None


@dataclass
class Occurrence:
    parent: CalendarEntry
    start: date | datetime
    end: date | datetime | None

    @property
    def summary(self) -> str | None:
        return self.parent.summary

    @property
    def description(self) -> str | None:
        return self.parent.description

    @property
    def status(self) -> str:
        return self.parent.status

    @property
    def rrules(self) -> list[str]:
        return self.parent.rrules

    @property
    def calname(self) -> str:
        return self.parent.calname


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _decoded(component: Component, name: str) -> Any:
    if name not in component:
        return None
    try:
        return component.decoded(name)
    except (KeyError, ValueError):
        return None


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _date_values(component: Component, name: str) -> list[date | datetime]:
    values: list[date | datetime] = []
    for prop in _as_list(component.get(name)):
        for item in getattr(prop, "dts", []):
            dt = item.dt
            # RDATE periods come back as (start, end|duration)
            if isinstance(dt, tuple):
                dt = dt[0]
            if isinstance(dt, date):
                values.append(dt)
    return values


def _text(component: Component, name: str) -> str | None:
    value = component.get(name)
    if value is None:
        return None
    return str(value)


def entry_from_component(component: Component, calname: str) -> CalendarEntry:
    start = _decoded(component, "DTSTART")
    end = _decoded(component, "DTEND")
    if end is None and start is not None:
        duration = _decoded(component, "DURATION")
        if isinstance(duration, timedelta):
            end = start + duration
    return CalendarEntry(
        uid=str(component.get("UID", "")),
        summary=_text(component, "SUMMARY"),
        description=_text(component, "DESCRIPTION"),
        status=_text(component, "STATUS") or "",
        start=start,
        end=end,
        calname=calname,
        rrules=[rule.to_ical().decode() for rule in _as_list(component.get("RRULE"))],
        exdates=_date_values(component, "EXDATE"),
        rdates=_date_values(component, "RDATE"),
        recurrence_id=_decoded(component, "RECURRENCE-ID"),
    )


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def to_zone(value: date | datetime, zone: tzinfo) -> datetime:
    """Express a DTSTART-like value in ``zone``; floating times are taken as local."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=zone)
        return value.astimezone(zone)
    return datetime.combine(value, time.min, tzinfo=zone)


def is_all_day(value: date | datetime | None) -> bool:
    if value is None:
        return False
    if not isinstance(value, datetime):
        return True
    return value.hour == 0 and value.minute == 0


def format_clock(value: datetime, time_format: str) -> str:
    if time_format == "am/pm":
        hour = value.hour % 12 or 12
        suffix = "AM" if value.hour < 12 else "PM"
        return f"{hour}:{value.minute:02d} {suffix}"
    return value.strftime("%H:%M")


def sanitize_description(description: str | None) -> str:
    if not description:
        return ""
    return _TAG.sub("", str(description)).strip()


def same_instant(a: date | datetime, b: date | datetime, zone: tzinfo) -> bool:
    return to_zone(a, zone) == to_zone(b, zone)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


def unique_events(events: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop events whose DEDUP_FIELDS all match an earlier one."""
    seen: set[tuple] = set()
    unique = []
    for event in events:
        key = tuple(event.get(name) for name in DEDUP_FIELDS)
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique


def date_label(day: date, date_format: str | None) -> str:
    if not date_format:
        return f"{day.strftime('%A, %B')} {day.day}"  # Monday, June 16
    if date_format == "short":
        return f"{day.strftime('%a %b')} {day.day}"  # Mon Jun 16
    return day.strftime(date_format)


def group_events_by_day(
    events: list[dict[str, Any]],
    today: date,
    days_to_show: int,
    date_format: str | None = None,
) -> dict[str, list[dict[str, Any]]]:
    """Bucket events by the calendar date of ``date_time`` for each shown day."""
    grouped: dict[str, list[dict[str, Any]]] = {}
    for offset in range(days_to_show):
        day = today + timedelta(days=offset)
        grouped[date_label(day, date_format)] = [e for e in events if e["date_time"].date() == day]
    return grouped
