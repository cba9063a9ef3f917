"""Tempest weather station plugin: current conditions plus today/tomorrow forecast.

The station is resolved from the device the user picked; the forecast comes
from ``better_forecast``. Once the provider's daily window rolls past the
user's midnight, today's low/high are read from the station's day stats.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

import httpx
from trmnl_plugin_sdk import PluginBase, PluginError

from .forecast import clock, day_index, icon_url, max_uv, smart_round_in_desired_unit

logger = logging.getLogger(__name__)

BASE_URL = "https://swd.weatherflow.com/swd/rest"


class TempestWeatherStationPlugin(PluginBase):
    keyname = "tempest_weather_station"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._forecast_data: dict[str, Any] | None = None
        self._station_id: Any = None

    # -- options ------------------------------------------------------------

    @classmethod
    async def devices(cls, access_token: str, *, http_client: httpx.AsyncClient | None = None) -> list[dict[str, Any]]:
        """Every ST device on the account as ``{"Station (ST id)": id}``."""
        response = await cls(http_client=http_client).fetch(f"{BASE_URL}/stations", query={"token": access_token})
        if not response.ok:
            raise PluginError(f"Tempest stations request failed: {response.error or response.status_code}")
        return [
            {f"{station.get('name')} (ST {device['device_id']})": device["device_id"]}
            for station in response.json().get("stations") or []
            for device in station.get("devices") or []
            if device.get("device_type") == "ST"
        ]

    # -- settings -----------------------------------------------------------

    @property
    def units(self) -> str:
        return "c" if str(self.setting("units", "imperial")).lower() == "metric" else "f"

    @property
    def units_wind(self) -> str | None:
        return self.setting("units_wind")

    @property
    def units_precip(self) -> str | None:
        return self.setting("units_precip")

    @property
    def forecast_headings(self) -> str | None:
        return self.setting("forecast_headings")

    @property
    def device_id(self) -> str:
        return str(self.setting("tempest_weather_station_devices", ""))

    @property
    def access_token(self) -> str | None:
        tokens = self.setting("tempest_weather_station") or {}
        return tokens.get("access_token") if isinstance(tokens, dict) else None

    # -- upstream -----------------------------------------------------------

    async def _get_json(self, url: str, query: dict[str, Any]) -> dict[str, Any]:
        response = await self.fetch(url, query=query)
        if not response.ok:
            raise PluginError(f"Tempest request failed: {response.error or response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise PluginError(f"Tempest returned invalid JSON: {e}") from e
        return data if isinstance(data, dict) else {}

    async def station_id(self) -> Any:
        if self._station_id is None:
            data = await self._get_json(f"{BASE_URL}/stations", {"token": self.access_token})
            for station in data.get("stations") or []:
                if any(str(device.get("device_id")) == self.device_id for device in station.get("devices") or []):
                    self._station_id = station.get("station_id")
                    break
            if self._station_id is None:
                raise PluginError(f"No Tempest station found for device {self.device_id}")
        return self._station_id

    async def forecast_query(self) -> dict[str, Any]:
        return {
            "station_id": await self.station_id(),
            "units_wind": self.units_wind,
            "units_precip": self.units_precip,
            "token": self.access_token,
        }

    async def forecast_data(self) -> dict[str, Any]:
        if self._forecast_data is None:
            query = {k: v for k, v in (await self.forecast_query()).items() if v is not None}
            self._forecast_data = await self._get_json(f"{BASE_URL}/better_forecast", query)
        return self._forecast_data

    async def today_stats(self, daily: list[dict[str, Any]]) -> dict[str, Any]:
        """Today's low/high when the daily forecast no longer includes today."""
        url = f"{BASE_URL}/stats/station/{await self.station_id()}"
        data = await self._get_json(url, {"api_key": self.access_token})
        today = self.today.strftime("%Y-%m-%d")
        row = next((r for r in data.get("stats_day") or [] if r and r[0] == today), None)
        if row is None:
            logger.warning("No station stats for %s", today)
            return {}
        # Columns follow the API's observation layout, shifted by the leading date
        return {"air_temp_low": row[4], "air_temp_high": row[5]}

    # -- shaping ------------------------------------------------------------

    @property
    def today(self) -> datetime:
        return self.user.datetime_now

    def day_bounds(self, offset: int) -> tuple[datetime, datetime]:
        start = (self.today + timedelta(days=offset)).replace(hour=0, minute=0, second=0, microsecond=0)
        return start, start + timedelta(days=1) - timedelta(microseconds=1)

    def day_override(self, offset: int) -> str | None:
        if self.forecast_headings != "absolute_date":
            return None
        return (self.today + timedelta(days=offset)).strftime("%b %d")

    def temperature(self, value: float | None) -> float | int | None:
        return smart_round_in_desired_unit(value, self.units)

    async def forecast(self) -> dict[str, Any]:
        data = await self.forecast_data()
        right_now = data.get("current_conditions") or {}
        daily = (data.get("forecast") or {}).get("daily") or []
        hourly = (data.get("forecast") or {}).get("hourly") or []
        zone = self.user.zone

        today_idx = day_index(daily, self.today.date(), zone)
        tomorrow_idx = day_index(daily, (self.today + timedelta(days=1)).date(), zone)
        today = daily[today_idx] if today_idx is not None else await self.today_stats(daily)
        tomorrow = daily[tomorrow_idx] if tomorrow_idx is not None else {}

        return {
            "right_now": {
                "feels_like": self.temperature(right_now.get("feels_like")),
                "humidity": right_now.get("relative_humidity"),
                "icon": right_now.get("icon"),
                "temperature": self.temperature(right_now.get("air_temperature")),
                "sunrise": clock(today.get("sunrise"), zone),
                "sunset": clock(today.get("sunset"), zone),
                "sunrise_unix": int(today["sunrise"]) if today.get("sunrise") else "",
                "sunset_unix": int(today["sunset"]) if today.get("sunset") else "",
                "wind": {
                    "direction_cardinal": right_now.get("wind_direction_cardinal"),
                    "gust": right_now.get("wind_gust"),
                    "units": self.units_wind,
                },
            },
            "today": {
                "icon": today.get("icon"),
                "mintemp": self.temperature(today.get("air_temp_low")),
                "maxtemp": self.temperature(today.get("air_temp_high")),
                "day_override": self.day_override(0),
                "conditions": today.get("conditions"),
                "uv_index": max_uv(hourly, *self.day_bounds(0)),
                "precip": {
                    "icon": today.get("precip_icon"),
                    "probability": today.get("precip_probability"),
                    "amount": right_now.get("precip_accum_local_day"),
                    "units": self.units_precip,
                },
            },
            "tomorrow": {
                "icon": tomorrow.get("icon"),
                "mintemp": self.temperature(tomorrow.get("air_temp_low")),
                "maxtemp": self.temperature(tomorrow.get("air_temp_high")),
                "day_override": self.day_override(1),
                "conditions": tomorrow.get("conditions"),
                "uv_index": max_uv(hourly, *self.day_bounds(1)),
                "precip": {
                    "icon": tomorrow.get("precip_icon"),
                    "probability": tomorrow.get("precip_probability"),
                },
            },
        }

    async def locals(self) -> dict[str, Any]:
        forecast = await self.forecast()
        right_now = forecast["right_now"]
        return {
            "temperature": right_now["temperature"],
            "forecast": forecast,
            "weather_image": icon_url(right_now["icon"], self.base_url),
            "today_weather_image": icon_url(forecast["today"]["icon"], self.base_url),
            "tomorrow_weather_image": icon_url(forecast["tomorrow"]["icon"], self.base_url),
            "conditions": forecast["today"]["conditions"],
            "humidity": right_now["humidity"],
            "feels_like": right_now["feels_like"],
        }
