"""Unit tests for the dynamic form-field options service."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
from trmnl_plugin_sdk import PluginBase

from trmnl_api.auth.oauth_token_cache import OAuthTokenCache
from trmnl_api.core.cache import OptionsCache
from trmnl_api.core.exceptions import PluginContractError, PluginNotFoundError
from trmnl_api.plugins.options import PluginOptionsService, normalize_options
from trmnl_api.plugins.registry import PluginRegistry


class StationPlugin(PluginBase):
    calls: list[str] = []

    async def locals(self):
        return {}

    @classmethod
    async def devices(cls, access_token: str, *, http_client: httpx.AsyncClient | None = None) -> list[dict[str, Any]]:
        cls.calls.append(access_token)
        if access_token == "broken":
            raise RuntimeError("provider down")
        return [{"Backyard (ST 100)": 200}, {"Roof (ST 101)": 201}]


class FakeHttpManager:
    async def get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404)))


MANIFEST = {
    "name": "station",
    "version": "1",
    "module": "tests:StationPlugin",
    "oauth_provider": "tempest",
    "option_fields": {"station_devices": "devices", "station_ghost": "missing_method"},
}


@pytest.fixture(autouse=True)
def _reset_calls():
    StationPlugin.calls = []


@pytest.fixture
def refresher() -> AsyncMock:
    return AsyncMock(return_value="refreshed")


@pytest.fixture
def service(refresher) -> PluginOptionsService:
    registry = PluginRegistry(credential_resolver=lambda service, key: None)
    registry.register(StationPlugin, MANIFEST)
    return PluginOptionsService(
        registry=registry,
        cache=OptionsCache(),
        token_cache=OAuthTokenCache(refresher=refresher),
        http_client_manager=FakeHttpManager(),
    )


def test_normalize_options_shapes() -> None:
    raw = [{"Backyard": 1}, "plain", {"label": "L", "value": 2}, {"a": "x", "b": "y"}]

    assert normalize_options(raw) == [
        {"label": "Backyard", "value": "1"},
        {"label": "plain", "value": "plain"},
        {"label": "L", "value": "2"},
        {"label": "a", "value": "x"},
        {"label": "b", "value": "y"},
    ]
    assert normalize_options({"One": 1}) == [{"label": "One", "value": "1"}]
    assert normalize_options(None) == []


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetches_with_access_token_then_serves_cache(self, service) -> None:
        tokens = {"tempest": {"access_token": "tok"}}

        first = await service.fetch("station", "station_devices", tokens, {"id": 5})
        second = await service.fetch("station", "station_devices", tokens, {"id": 5})

        assert first["options"] == [
            {"label": "Backyard (ST 100)", "value": "200"},
            {"label": "Roof (ST 101)", "value": "201"},
        ]
        assert first["from_cache"] is False
        assert first["plugin"] == "station"
        assert first["field_name"] == "station_devices"
        assert second["from_cache"] is True
        assert second["options"] == first["options"]
        assert second["cached_at"] == first["cached_at"]
        assert StationPlugin.calls == ["tok"]

    @pytest.mark.asyncio
    async def test_refresh_token_is_exchanged(self, service, refresher) -> None:
        result = await service.fetch("station", "station_devices", {"tempest": {"refresh_token": "r"}}, {"id": 5})

        assert result is not None
        refresher.assert_awaited_once_with("tempest", "r")
        assert StationPlugin.calls == ["refreshed"]

    @pytest.mark.asyncio
    async def test_no_token_returns_none(self, service) -> None:
        assert await service.fetch("station", "station_devices", {}, {"id": 5}) is None
        assert StationPlugin.calls == []

    @pytest.mark.asyncio
    async def test_provider_failure_returns_none_and_is_not_cached(self, service) -> None:
        tokens = {"tempest": {"access_token": "broken"}}

        assert await service.fetch("station", "station_devices", tokens, {"id": 5}) is None
        assert await service.fetch("station", "station_devices", tokens, {"id": 5}) is None
        assert StationPlugin.calls == ["broken", "broken"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field_name", ["station_ghost", "unknown_field"])
    async def test_unsupported_field(self, service, field_name) -> None:
        with pytest.raises(PluginContractError, match=f"does not support fetching {field_name}"):
            await service.fetch("station", field_name, {"tempest": {"access_token": "tok"}}, {"id": 5})

    @pytest.mark.asyncio
    async def test_unknown_plugin(self, service) -> None:
        with pytest.raises(PluginNotFoundError):
            await service.fetch("nope", "devices", {}, {"id": 5})
