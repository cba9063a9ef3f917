"""Unit tests for the Tempest weather station plugin."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from trmnl_plugin_sdk import FakeHttpBuilder, PluginError, fixed_clock, make_trmnl_data
from trmnl_plugin_sdk.contracts import assert_plugin_contract

from tempest_weather_station.forecast import icon_url, max_uv, smart_round_in_desired_unit
from tempest_weather_station.manifest import PLUGIN_MANIFEST
from tempest_weather_station.plugin import BASE_URL, TempestWeatherStationPlugin


# ---------------------------------------------------------------------------
# Contract gate
# ---------------------------------------------------------------------------


def test_contract() -> None:
    assert_plugin_contract(TempestWeatherStationPlugin, manifest=PLUGIN_MANIFEST)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

NOW = datetime(2025, 6, 16, 18, 0, tzinfo=UTC)
TODAY = int(datetime(2025, 6, 16, tzinfo=UTC).timestamp())
TOMORROW = TODAY + 86400
HOUR = 3600

STATIONS_URL = f"{BASE_URL}/stations"
FORECAST_URL = f"{BASE_URL}/better_forecast"
STATS_URL = f"{BASE_URL}/stats/station/77"

STATIONS = {
    "stations": [
        {
            "station_id": 77,
            "name": "Backyard",
            "devices": [
                {"device_id": 111, "device_type": "HB"},
                {"device_id": 222, "device_type": "ST"},
            ],
        }
    ]
}

TODAY_FORECAST = {
    "day_start_local": TODAY,
    "icon": "clear-day",
    "conditions": "Clear",
    "air_temp_low": 10.0,
    "air_temp_high": 20.0,
    "sunrise": TODAY + 5 * HOUR + 30 * 60,
    "sunset": TODAY + 20 * HOUR + 45 * 60,
    "precip_icon": "chance-rain",
    "precip_probability": 10,
}
TOMORROW_FORECAST = {
    "day_start_local": TOMORROW,
    "icon": "rainy",
    "conditions": "Rain likely",
    "air_temp_low": 12.5,
    "air_temp_high": 18.0,
    "precip_icon": "chance-rain",
    "precip_probability": 80,
}


def _forecast(daily: list[dict]) -> dict:
    return {
        "current_conditions": {
            "air_temperature": 20.0,
            "feels_like": 21.5,
            "relative_humidity": 55,
            "icon": "clear-night",
            "wind_direction_cardinal": "NW",
            "wind_gust": 4.2,
            "precip_accum_local_day": 0,
        },
        "forecast": {
            "daily": daily,
            "hourly": [
                {"time": TODAY + 19 * HOUR, "uv": 2.0},
                {"time": TODAY + 20 * HOUR, "uv": 1.0},
                {"time": TOMORROW + 12 * HOUR, "uv": 6.44},
                {"time": TOMORROW + 13 * HOUR, "uv": 5.0},
            ],
        },
    }


def _settings(**overrides) -> dict:
    return {
        "tempest_weather_station_devices": "222",
        "tempest_weather_station": {"access_token": "tok"},
        "units": "imperial",
        "units_wind": "mph",
        "units_precip": "in",
        **overrides,
    }


def _plugin(builder: FakeHttpBuilder, settings: dict | None = None, time_zone: str = "UTC", now: datetime = NOW):
    return TempestWeatherStationPlugin(
        settings or _settings(),
        make_trmnl_data(time_zone=time_zone),
        manifest=PLUGIN_MANIFEST,
        http_client=builder.build(),
        clock=fixed_clock(now),
    )


def _builder(daily: list[dict] | None = None) -> FakeHttpBuilder:
    return (
        FakeHttpBuilder()
        .with_json("GET", STATIONS_URL, STATIONS)
        .with_json("GET", FORECAST_URL, _forecast(daily if daily is not None else [TODAY_FORECAST, TOMORROW_FORECAST]))
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_smart_round_converts_only_for_imperial() -> None:
    assert smart_round_in_desired_unit(20, "f") == 68
    assert smart_round_in_desired_unit(12.5, "f") == 55
    assert smart_round_in_desired_unit(-40, "f") == -40
    assert smart_round_in_desired_unit(21.37, "c") == 21.37
    assert smart_round_in_desired_unit(None, "f") is None


def test_max_uv_stays_within_bounds() -> None:
    start = datetime.fromtimestamp(TOMORROW, UTC)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    hourly = [{"time": TODAY + HOUR, "uv": 9.0}, {"time": TOMORROW + HOUR, "uv": 3.0}]

    assert max_uv(hourly, start, end) == 3
    assert max_uv([{"time": TOMORROW, "uv": 4.44}], start, end) == 4.4
    assert max_uv([], start, end) is None


def test_icon_url_prefers_native_icons() -> None:
    base = "https://trmnl.example.com"
    assert icon_url("clear-day", base) == f"{base}/images/plugins/weather/wi-day-sunny.svg"
    assert icon_url("clear-night", base) == f"{base}/images/plugins/weather/wi-night-clear.svg"
    assert icon_url("foggy", base) == "https://tempestwx.com/images/Updated/foggy.svg"


# ---------------------------------------------------------------------------
# Plugin
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_locals_in_imperial_units() -> None:
    builder = _builder()
    result = await _plugin(builder).locals()

    assert result["temperature"] == 68
    assert result["feels_like"] == 71
    assert result["humidity"] == 55
    assert result["conditions"] == "Clear"
    assert result["weather_image"] == "http://localhost:3000/images/plugins/weather/wi-night-clear.svg"
    assert result["today_weather_image"] == "http://localhost:3000/images/plugins/weather/wi-day-sunny.svg"
    assert result["tomorrow_weather_image"] == "https://tempestwx.com/images/Updated/rainy.svg"

    forecast = result["forecast"]
    assert forecast["right_now"]["sunrise"] == "05:30"
    assert forecast["right_now"]["sunset_unix"] == TODAY + 20 * HOUR + 45 * 60
    assert forecast["right_now"]["wind"] == {"direction_cardinal": "NW", "gust": 4.2, "units": "mph"}
    assert (forecast["today"]["mintemp"], forecast["today"]["maxtemp"]) == (50, 68)
    assert (forecast["tomorrow"]["mintemp"], forecast["tomorrow"]["maxtemp"]) == (55, 64)
    assert forecast["today"]["uv_index"] == 2
    assert forecast["tomorrow"]["uv_index"] == 6.4
    assert forecast["today"]["day_override"] is None


@pytest.mark.asyncio
async def test_forecast_request_uses_resolved_station() -> None:
    builder = _builder()
    await _plugin(builder).locals()

    [request] = builder.calls_to(FORECAST_URL)
    assert request.url.params["station_id"] == "77"
    assert request.url.params["token"] == "tok"
    assert request.url.params["units_wind"] == "mph"
    assert len(builder.calls_to(STATIONS_URL)) == 1


@pytest.mark.asyncio
async def test_metric_units_pass_through() -> None:
    result = await _plugin(_builder(), _settings(units="Metric")).locals()

    assert result["temperature"] == 20.0
    assert result["forecast"]["tomorrow"]["mintemp"] == 12.5


@pytest.mark.asyncio
async def test_absolute_date_headings() -> None:
    result = await _plugin(_builder(), _settings(forecast_headings="absolute_date")).locals()

    assert result["forecast"]["today"]["day_override"] == "Jun 16"
    assert result["forecast"]["tomorrow"]["day_override"] == "Jun 17"


@pytest.mark.asyncio
async def test_today_falls_back_to_station_stats() -> None:
    stats = {"stats_day": [["2025-06-15", 0, 0, 0, 8.0, 19.0], ["2025-06-16", 0, 0, 0, 9.0, 21.0]]}
    builder = _builder([TOMORROW_FORECAST]).with_json("GET", STATS_URL, stats)

    result = await _plugin(builder, _settings(units="metric")).locals()

    assert result["forecast"]["today"]["mintemp"] == 9.0
    assert result["forecast"]["today"]["maxtemp"] == 21.0
    assert result["forecast"]["tomorrow"]["conditions"] == "Rain likely"
    assert builder.calls_to(STATS_URL)[0].url.params["api_key"] == "tok"


@pytest.mark.asyncio
async def test_days_are_matched_in_user_timezone() -> None:
    los_angeles = ZoneInfo("America/Los_Angeles")
    today_start = int(datetime(2025, 6, 16, tzinfo=los_angeles).timestamp())
    daily = [
        {**TODAY_FORECAST, "day_start_local": today_start, "conditions": "Sunny in LA"},
        {**TOMORROW_FORECAST, "day_start_local": today_start + 86400},
    ]
    # 03:00 UTC on the 17th is still the evening of the 16th in Los Angeles
    now = datetime(2025, 6, 17, 3, 0, tzinfo=UTC)

    result = await _plugin(_builder(daily), time_zone="America/Los_Angeles", now=now).locals()

    assert result["conditions"] == "Sunny in LA"
    assert result["forecast"]["tomorrow"]["conditions"] == "Rain likely"


@pytest.mark.asyncio
async def test_unknown_device_raises() -> None:
    with pytest.raises(PluginError, match="999"):
        await _plugin(_builder(), _settings(tempest_weather_station_devices="999")).locals()


@pytest.mark.asyncio
async def test_unreachable_forecast_raises_after_retries() -> None:
    builder = FakeHttpBuilder().with_json("GET", STATIONS_URL, STATIONS).with_transport_error("GET", FORECAST_URL)

    with pytest.raises(PluginError, match="Tempest request failed"):
        await _plugin(builder).locals()
    assert len(builder.calls_to(FORECAST_URL)) == 4


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_devices_lists_only_st_devices() -> None:
    builder = FakeHttpBuilder().with_json("GET", STATIONS_URL, STATIONS)

    devices = await TempestWeatherStationPlugin.devices("tok", http_client=builder.build())

    assert devices == [{"Backyard (ST 222)": 222}]
    assert builder.requests[0].url.params["token"] == "tok"
