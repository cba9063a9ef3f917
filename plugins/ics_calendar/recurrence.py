"""Expand RRULE-bearing calendar entries into occurrences inside a window."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, tzinfo

from dateutil.rrule import rruleset, rrulestr

from .events import CalendarEntry, Occurrence

logger = logging.getLogger(__name__)

_UNTIL = re.compile(r"UNTIL=(\d{8})(T\d{6})?(Z)?", re.IGNORECASE)


def coerce_until(rule: str, aware: bool) -> str:
    """Make UNTIL agree with DTSTART: UTC when DTSTART is aware, floating otherwise.

    A date-only UNTIL covers the whole day.
    """

    def _fix(match: re.Match) -> str:
        day, clock, _ = match.groups()
        return f"UNTIL={day}{clock or 'T235959'}{'Z' if aware else ''}"

    return _UNTIL.sub(_fix, rule)


def _align(value: date | datetime, dtstart: datetime, zone: tzinfo) -> datetime:
    # EXDATE/RDATE values must compare against DTSTART-shaped datetimes
    if not isinstance(value, datetime):
        return datetime.combine(value, dtstart.timetz())
    if dtstart.tzinfo is None and value.tzinfo is not None:
        return value.astimezone(zone).replace(tzinfo=None)
    if dtstart.tzinfo is not None and value.tzinfo is None:
        return value.replace(tzinfo=dtstart.tzinfo)
    return value


def expand(
    entry: CalendarEntry,
    window_start: date,
    window_end: date,
    zone: tzinfo,
) -> list[CalendarEntry | Occurrence]:
    """Occurrences of ``entry`` starting within ``[window_start, window_end]`` (whole days in ``zone``).

    Entries without a rule come back unchanged; a rule that cannot be
    evaluated degrades to the base entry.
    """
    if not entry.rrules or entry.start is None:
        return [entry]

    all_day = not isinstance(entry.start, datetime)
    dtstart = datetime.combine(entry.start, time.min) if all_day else entry.start
    aware = dtstart.tzinfo is not None
    duration: timedelta | None = entry.end - entry.start if entry.end is not None else None

    window_tz = zone if aware else None
    lower = datetime.combine(window_start, time.min, tzinfo=window_tz)
    upper = datetime.combine(window_end, time.max, tzinfo=window_tz)

    try:
        rules = rruleset()
        for rule in entry.rrules:
            rules.rrule(rrulestr(coerce_until(rule, aware), dtstart=dtstart))
        for value in entry.rdates:
            rules.rdate(_align(value, dtstart, zone))
        for value in entry.exdates:
            rules.exdate(_align(value, dtstart, zone))
        starts = rules.between(lower, upper, inc=True)
    except (ValueError, TypeError) as e:
        logger.error("Error expanding recurring event '%s': %s (RRULE: %s)", entry.summary, e, entry.rrules[0])
        return [entry]

    occurrences: list[CalendarEntry | Occurrence] = []
    for start in starts:
        own_start: date | datetime = start.date() if all_day else start
        own_end = own_start + duration if duration is not None else None
        occurrences.append(Occurrence(parent=entry, start=own_start, end=own_end))

    logger.info("Recurring event '%s' expanded to %d occurrences", entry.summary, len(occurrences))
    return occurrences
