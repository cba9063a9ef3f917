"""ICS calendar plugin: merges one or more iCalendar feeds into display-ready events.

Works with any provider that publishes an ``.ics`` feed (Apple, Outlook,
Fastmail, Nextcloud, ...). Recurring series are expanded over a window that
depends on ``event_layout``, overrides (``RECURRENCE-ID``) replace the
occurrence they modify, and the final list is filtered, de-duplicated and,
for day-based layouts, bucketed per day.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any

from icalendar import Calendar
from trmnl_plugin_sdk import CalendarSourceError, PluginBase

from .events import (
    DEFAULT_DURATION,
    CalendarEntry,
    Occurrence,
    entry_from_component,
    format_clock,
    group_events_by_day,
    is_all_day,
    same_instant,
    sanitize_description,
    to_zone,
    unique_events,
)
from .recurrence import expand

logger = logging.getLogger(__name__)

DAY_LAYOUTS = ("default", "today_only", "schedule")
MONTH_LAYOUTS = ("month", "rolling_month")
DEFAULT_DAYS_TO_SHOW = {"today_only": 1, "default": 7, "schedule": 14}
WEEKDAYS = {"sun": 0, "mon": 1, "tue": 2, "wed": 3, "thu": 4, "fri": 5, "sat": 6}
INVALID_SOURCE = "ics_url is invalid"


def calendar_name(calendar: Calendar, url: str) -> str:
    name = calendar.get("X-WR-CALNAME")
    if name:
        return str(name)
    stem = url.rstrip("/").rsplit("/", 1)[-1].split(".", 1)[0]
    return stem or "Calendar"


class IcsCalendarPlugin(PluginBase):
    keyname = "ics_calendar"

    # -- settings -----------------------------------------------------------

    @property
    def event_layout(self) -> str:
        return self.setting("event_layout", "default")

    @property
    def include_description(self) -> bool:
        if not self.setting("include_description"):
            return True
        return self.setting("include_description") == "yes"

    @property
    def include_event_time(self) -> bool:
        if not self.setting("include_event_time"):
            return False
        return self.setting("include_event_time") == "yes"

    @property
    def time_format(self) -> str:
        return self.setting("time_format", "am/pm")

    @property
    def first_day(self) -> int:
        """Week start as a Sunday-based weekday number."""
        name = str(self.setting("first_day", "")).strip().lower()[:3]
        return WEEKDAYS.get(name, 0)

    @property
    def days_to_show(self) -> int:
        """Day buckets for day-based layouts; blank or non-positive values use the layout default."""
        fallback = DEFAULT_DAYS_TO_SHOW.get(self.event_layout, DEFAULT_DAYS_TO_SHOW["default"])
        try:
            days = int(str(self.setting("days_to_show", "")).strip())
        except ValueError:
            return fallback
        return days if days > 0 else fallback

    @property
    def zoom_mode(self) -> bool:
        return self.setting("zoom_mode") == "yes"

    @property
    def headers(self) -> dict[str, str]:
        return self.string_to_hash(self.setting("headers"))

    # -- time window --------------------------------------------------------

    @property
    def now_in_tz(self) -> datetime:
        return self.user.datetime_now

    @property
    def beginning_of_day(self) -> datetime:
        return self.now_in_tz.replace(hour=0, minute=0, second=0, microsecond=0)

    @property
    def today(self) -> date:
        return self.now_in_tz.date()

    @property
    def time_min(self) -> datetime:
        days_behind = 30 if self.event_layout in MONTH_LAYOUTS else 7
        return self.beginning_of_day - timedelta(days=days_behind)

    @property
    def time_max(self) -> datetime:
        if self.event_layout in MONTH_LAYOUTS:
            days_ahead = 30
        elif self.event_layout == "schedule":
            days_ahead = 14
        else:
            days_ahead = 7
        end_of_day = self.now_in_tz.replace(hour=23, minute=59, second=59, microsecond=999999)
        return end_of_day + timedelta(days=days_ahead)

    def recurrence_window(self) -> tuple[date, date]:
        today = self.today
        layout = self.event_layout
        if layout == "week":
            start = today - timedelta(days=7)
        elif layout == "month":
            start = today.replace(day=1)
        elif layout == "rolling_month":
            sunday_based = (today.weekday() + 1) % 7
            start = today - timedelta(days=(sunday_based - self.first_day) % 7)
        else:
            start = today

        end = today + timedelta(days=2) if layout == "today_only" else self.time_max.date()
        return start, end

    # -- sources ------------------------------------------------------------

    async def fetch_calendars(self) -> list[tuple[str, Calendar]]:
        urls = [
            url.replace("webcal://", "https://")
            for url in self.line_separated_string_to_array(self.setting("ics_url"))
        ]
        logger.info("Fetching %d calendar URLs", len(urls))

        calendars: list[tuple[str, Calendar]] = []
        for url in urls:
            response = await self.fetch(url, headers=self.headers, timeout=30, should_retry=False)
            if not response.ok or not response.text:
                logger.warning("Skipping calendar %s: %s", url, response.error or f"HTTP {response.status_code}")
                continue
            text = response.text.replace("Customized Time Zone", self.user.tz)
            try:
                parsed = Calendar.from_ical(text, multiple=True)
            except (ValueError, IndexError) as e:
                logger.warning("Failed to parse calendar %s: %s", url, e)
                continue
            if not parsed:
                continue
            calendars.append((url, parsed[0]))

        if not calendars:
            raise CalendarSourceError(INVALID_SOURCE, sources=urls)
        logger.info("Total calendars loaded: %d", len(calendars))
        return calendars

    async def entries(self) -> list[CalendarEntry]:
        entries: list[CalendarEntry] = []
        for url, calendar in await self.fetch_calendars():
            name = calendar_name(calendar, url)
            entries.extend(entry_from_component(component, name) for component in calendar.walk("VEVENT"))
        return entries

    # -- normalization ------------------------------------------------------

    def should_be_ignored(self, entry: CalendarEntry | Occurrence) -> bool:
        if not entry.summary:
            return False
        phrases = self.line_separated_string_to_array(self.setting("ignore_phrases_exact_match"))
        return any(entry.summary.strip() == phrase.strip() for phrase in phrases)

    def ignore_based_on_status(self, entry: CalendarEntry | Occurrence) -> bool:
        if isinstance(entry, CalendarEntry):
            if entry.status.upper() == "CANCELLED" and entry.start is None:
                return True
            if entry.start is not None and any(
                same_instant(entry.start, exdate, self.user.zone) for exdate in entry.exdates
            ):
                return True
        if entry.status.lower() == "confirmed":
            return False
        return self.setting("event_status_filter") == "confirmed_only"

    def prepare_event(self, entry: CalendarEntry | Occurrence) -> dict[str, Any] | None:
        if self.should_be_ignored(entry):
            logger.debug("Event ignored by phrase: %s", entry.summary)
            return None
        if entry.start is None:
            logger.debug("Event ignored (no start time): %s", entry.summary)
            return None
        if self.ignore_based_on_status(entry):
            return None

        zone = self.user.zone
        start_full = to_zone(entry.start, zone)
        end_full = to_zone(entry.end, zone) if entry.end is not None else start_full + DEFAULT_DURATION
        raw_start = entry.parent.start if isinstance(entry, Occurrence) else entry.start

        return {
            "summary": entry.summary if entry.summary is not None else "Busy",
            "description": sanitize_description(entry.description),
            "status": entry.status or "",
            "date_time": start_full,
            "all_day": is_all_day(raw_start),
            "calname": entry.calname,
            "start_full": start_full,
            "end_full": end_full,
            "start": format_clock(start_full, self.time_format),
            "end": format_clock(end_full, self.time_format) if entry.end is not None else None,
        }

    async def all_events(self) -> list[dict[str, Any]]:
        zone = self.user.zone
        entries = await self.entries()
        overrides = {
            (entry.uid, to_zone(entry.recurrence_id, zone)): entry
            for entry in entries
            if entry.recurrence_id is not None
        }
        logger.info("Processing %d entries, %d recurrence overrides", len(entries), len(overrides))

        window_start, window_end = self.recurrence_window()
        prepared: list[dict[str, Any]] = []
        for entry in entries:
            if entry.recurrence_id is not None:
                continue
            if not entry.rrules:
                event = self.prepare_event(entry)
                if event:
                    prepared.append(event)
                continue
            for occurrence in expand(entry, window_start, window_end, zone):
                key = (entry.uid, to_zone(occurrence.start, zone)) if occurrence.start is not None else None
                event = self.prepare_event(overrides.get(key, occurrence))
                if event:
                    prepared.append(event)
        return prepared

    def in_window(self, event: dict[str, Any]) -> bool:
        time_min, time_max = self.time_min, self.time_max
        if time_min <= event["date_time"] <= time_max:
            return True
        return not event["all_day"] and time_min <= event["end_full"] <= time_max

    async def events(self) -> list[dict[str, Any]]:
        filtered = [event for event in await self.all_events() if self.in_window(event)]
        final = sorted(unique_events(filtered), key=lambda e: e["date_time"])
        logger.info("Final event count: %d", len(final))
        return final

    # -- locals -------------------------------------------------------------

    @staticmethod
    def scroll_bounds(events: list[dict[str, Any]]) -> tuple[str | None, str | None]:
        timed = [e for e in events if not e["all_day"]]
        if not timed:
            return None, None
        return (
            min(e["start_full"].strftime("%H:00:00") for e in timed),
            max(e["end_full"].strftime("%H:00:00") for e in timed),
        )

    @staticmethod
    def serialize(event: dict[str, Any]) -> dict[str, Any]:
        return {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in event.items()
        }

    async def locals(self) -> dict[str, Any]:
        error = None
        try:
            events = await self.events()
        except CalendarSourceError as e:
            logger.warning("No calendars could be loaded: %s", e)
            error = str(e)
            events = []

        layout = self.event_layout
        events_by_day: dict[str, list[dict[str, Any]]] = {}
        if layout in DAY_LAYOUTS:
            grouped = group_events_by_day(events, self.today, self.days_to_show, self.setting("date_format"))
            events_by_day = {label: [self.serialize(e) for e in day] for label, day in grouped.items()}

        earliest, latest = self.scroll_bounds(events)
        result: dict[str, Any] = {
            "events": [self.serialize(e) for e in events],
            "events_by_day": events_by_day,
            "event_layout": layout,
            "include_description": self.include_description,
            "include_event_time": self.include_event_time,
            "first_day": self.first_day,
            "scroll_time": self.setting("scroll_time") or earliest or "08:00:00",
            "scroll_time_end": self.setting("scroll_time_end") or latest or "24:00:00",
            "time_format": self.time_format,
            "today_in_tz": self.beginning_of_day.isoformat(),
            "zoom_mode": self.zoom_mode,
        }
        if error:
            result["error"] = error
        return result
