"""
Options caching for the TRMNL plugin API.

Dynamic form-field options (device lists, calendars, ...) are expensive to
fetch from providers and are requested repeatedly while a user edits a
plugin, so they are kept for a short time per (user, plugin, field).
"""

import threading
import time
from collections.abc import Callable
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

OPTIONS_CACHE_TTL = 300  # 5 minutes
OPTIONS_CACHE_CLEANUP_THRESHOLD = 100


class OptionsCache:
    """Thread-safe TTL cache for plugin field options."""

    def __init__(
        self,
        ttl: float = OPTIONS_CACHE_TTL,
        cleanup_threshold: int = OPTIONS_CACHE_CLEANUP_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ):
        self._entries: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._cache_ttl = ttl
        self._cleanup_threshold = cleanup_threshold
        self._clock = clock
        self._lock = threading.Lock()

    @staticmethod
    def key(user_id: Any, plugin: str, field_name: str) -> tuple[str, str, str]:
        return (str(user_id) if user_id is not None else "anonymous", plugin, field_name)

    def get(self, user_id: Any, plugin: str, field_name: str) -> dict[str, Any] | None:
        """Return ``{"options", "cached_at"}`` when a fresh entry exists."""
        cache_key = self.key(user_id, plugin, field_name)
        current_time = self._clock()
        with self._lock:
            entry = self._entries.get(cache_key)
            if entry is None:
                logger.debug("Cache miss for options: %s", cache_key)
                return None
            if current_time - entry["timestamp"] >= self._cache_ttl:
                del self._entries[cache_key]
                logger.debug("Expired options entry: %s", cache_key)
                return None
            logger.debug("Cache hit for options: %s", cache_key)
            return {"options": entry["options"], "cached_at": entry["timestamp"]}

    def set(self, user_id: Any, plugin: str, field_name: str, options: list[dict[str, Any]]) -> float:
        """Store options and return the timestamp they were cached at."""
        cache_key = self.key(user_id, plugin, field_name)
        current_time = self._clock()
        with self._lock:
            self._entries[cache_key] = {"options": options, "timestamp": current_time}
            if len(self._entries) > self._cleanup_threshold:
                self._cleanup_expired_entries(current_time)
        logger.debug("Cached options: %s", cache_key)
        return current_time

    def _cleanup_expired_entries(self, current_time: float) -> None:
        # Caller holds the lock
        expired_keys = [
            key for key, entry in self._entries.items()
            if current_time - entry["timestamp"] >= self._cache_ttl
        ]
        for key in expired_keys:
            del self._entries[key]
        logger.debug("Options cache cleanup completed. Entries: %d", len(self._entries))

    def clear_all(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Options cache cleared")

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "cache_ttl": self._cache_ttl,
            }


# Global cache instance
options_cache = OptionsCache()


def get_options_cache() -> OptionsCache:
    """Get the global options cache instance."""
    return options_cache
