"""Contribution statistics over a day-ordered GitHub contribution calendar."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any


def _count(day: Mapping[str, Any] | None) -> int:
    if not day:
        return 0
    return int(day.get("contributionCount") or 0)


def flatten_days(weeks: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """All ``contributionDays`` from the calendar's weeks, sorted by date."""
    days = [day for week in weeks for day in (week.get("contributionDays") or [])]
    return sorted(days, key=lambda day: day.get("date") or "")


def longest_streak(days: Sequence[Mapping[str, Any]]) -> int:
    longest = current = 0
    for day in days:
        if _count(day) > 0:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


def current_streak(days: Sequence[Mapping[str, Any]]) -> int:
    """Run of active days ending today.

    Today adds to the streak when it has contributions but does not break it
    when it has none yet.
    """
    if not days:
        return 0
    streak = 1 if _count(days[-1]) > 0 else 0
    for day in reversed(days[:-1]):
        if _count(day) == 0:
            break
        streak += 1
    return streak


def average_contributions(days: Sequence[Mapping[str, Any]]) -> float:
    if not days:
        return 0.0
    return round(sum(_count(day) for day in days) / len(days), 2)


def max_contributions(days: Sequence[Mapping[str, Any]]) -> int:
    return max((_count(day) for day in days), default=0)


def summarize(days: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    return {
        "longest_streak": longest_streak(days),
        "current_streak": current_streak(days),
        "max_contributions": max_contributions(days),
        "average_contributions": average_contributions(days),
    }
