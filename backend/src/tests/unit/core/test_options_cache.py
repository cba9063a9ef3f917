"""
Unit tests for OptionsCache.

The clock is injected so expiry can be exercised without sleeping.
"""

import pytest

from trmnl_api.core.cache import OptionsCache, get_options_cache, options_cache


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestOptionsCache:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return OptionsCache(ttl=300, cleanup_threshold=3, clock=clock)

    def test_miss_returns_none(self, cache) -> None:
        assert cache.get(1, "tempest_weather_station", "devices") is None

    def test_set_then_get(self, cache, clock) -> None:
        options = [{"label": "Backyard", "value": "1"}]
        cached_at = cache.set(1, "tempest_weather_station", "devices", options)

        assert cached_at == clock.now
        assert cache.get(1, "tempest_weather_station", "devices") == {"options": options, "cached_at": clock.now}

    def test_entries_are_scoped_per_user(self, cache) -> None:
        cache.set(1, "todoist", "projects", [{"label": "A", "value": "a"}])
        assert cache.get(2, "todoist", "projects") is None

    def test_missing_user_is_anonymous(self, cache) -> None:
        cache.set(None, "todoist", "projects", [])
        assert OptionsCache.key(None, "todoist", "projects") == ("anonymous", "todoist", "projects")
        assert cache.get(None, "todoist", "projects") is not None

    def test_entry_expires_after_ttl(self, cache, clock) -> None:
        cache.set(1, "todoist", "projects", [])
        clock.now += 299
        assert cache.get(1, "todoist", "projects") is not None

        clock.now += 1
        assert cache.get(1, "todoist", "projects") is None
        assert cache.get_stats()["entries"] == 0

    def test_cleanup_runs_past_threshold(self, cache, clock) -> None:
        for user in range(3):
            cache.set(user, "todoist", "projects", [])
        clock.now += 301

        cache.set(99, "todoist", "projects", [])

        assert cache.get_stats() == {"entries": 1, "cache_ttl": 300}

    def test_clear_all(self, cache) -> None:
        cache.set(1, "todoist", "projects", [])
        cache.clear_all()
        assert cache.get_stats()["entries"] == 0


def test_global_cache_getter() -> None:
    assert get_options_cache() is options_cache
