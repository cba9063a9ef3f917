"""Tests for trmnl_plugin_sdk.testing (FakeHttpBuilder and context helpers)."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import httpx
import pytest

from trmnl_plugin_sdk.testing import FakeHttpBuilder, fixed_clock, make_trmnl_data, patch_retry_sleep


def test_make_trmnl_data_shape() -> None:
    data = make_trmnl_data(user_id=9, time_zone="Europe/Paris", oauth_tokens={"google": {"refresh_token": "r"}})

    assert data == {
        "user": {"id": 9, "time_zone_iana": "Europe/Paris", "locale": "en"},
        "plugin_settings": {"id": 1, "created_at": None},
        "oauth_tokens": {"google": {"refresh_token": "r"}},
    }


def test_fixed_clock() -> None:
    moment = datetime(2025, 1, 1, tzinfo=UTC)
    clock = fixed_clock(moment)
    assert clock() is moment
    assert clock() is moment


@pytest.mark.asyncio
async def test_patch_retry_sleep_yields_mock_and_restores() -> None:
    with patch_retry_sleep() as sleep:
        from trmnl_plugin_sdk import retry

        await retry.asyncio.sleep(30)
        sleep.assert_awaited_once_with(30)
    assert not isinstance(asyncio.sleep, type(sleep))


# ---------------------------------------------------------------------------
# FakeHttpBuilder
# ---------------------------------------------------------------------------


class TestFakeHttpBuilder:
    @pytest.mark.asyncio
    async def test_routes_match_method_and_url(self) -> None:
        fake = (
            FakeHttpBuilder()
            .with_json("GET", "https://api.example.com/a", {"a": 1})
            .with_text("POST", "https://api.example.com/a", "created", status_code=201)
        )
        client = fake.build()

        get = await client.get("https://api.example.com/a", params={"q": "x"})
        post = await client.post("https://api.example.com/a")
        missing = await client.get("https://api.example.com/b")

        assert get.json() == {"a": 1}
        assert post.status_code == 201
        assert post.text == "created"
        assert missing.status_code == 404
        assert len(fake.calls_to("https://api.example.com/a")) == 2

    @pytest.mark.asyncio
    async def test_exact_query_route_wins(self) -> None:
        fake = (
            FakeHttpBuilder()
            .with_json("GET", "https://api.example.com/s", {"which": "any"})
            .with_json("GET", "https://api.example.com/s?page=2", {"which": "page-2"})
        )
        client = fake.build()

        assert (await client.get("https://api.example.com/s", params={"page": 2})).json() == {"which": "page-2"}
        assert (await client.get("https://api.example.com/s", params={"page": 3})).json() == {"which": "any"}

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        client = FakeHttpBuilder().with_transport_error("GET", "https://down.example.com/feed", "refused").build()

        with pytest.raises(httpx.ConnectError, match="refused"):
            await client.get("https://down.example.com/feed")
