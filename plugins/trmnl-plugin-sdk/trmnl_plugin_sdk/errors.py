"""Errors plugins raise to report domain failures to the executor."""

from __future__ import annotations


class PluginError(Exception):
    """A plugin could not produce its data (bad credentials, provider error, ...)."""


class CalendarSourceError(PluginError):
    """None of the configured calendar sources could be fetched or parsed."""

    def __init__(self, message: str = "ics_url is invalid", sources: list[str] | None = None) -> None:
        self.sources = list(sources or [])
        super().__init__(message)
