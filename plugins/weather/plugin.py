"""Weather plugin: Tempest forecasts for any location, no station required."""

from __future__ import annotations

from typing import Any

from trmnl_plugin_sdk import PluginError

from plugins.tempest_weather_station.plugin import TempestWeatherStationPlugin


class WeatherPlugin(TempestWeatherStationPlugin):
    keyname = "weather"

    @property
    def coordinates(self) -> tuple[str, str]:
        lat, _, lon = str(self.setting("lat_lon", "")).partition(",")
        if not lat.strip() or not lon.strip():
            raise PluginError("lat_lon must look like '40.71,-74.00'")
        return lat.strip(), lon.strip()

    async def forecast_query(self) -> dict[str, Any]:
        lat, lon = self.coordinates
        return {
            "lat": lat,
            "lon": lon,
            "units_precip": self.units_precip,
            "snap_to_nearest_owned_station": "true",
            "api_key": self.credential("tempest_api_key"),
        }

    async def today_stats(self, daily: list[dict[str, Any]]) -> dict[str, Any]:
        # Public forecasts have no station stats; the first daily entry is the closest
        first = daily[0] if daily else {}
        return {"air_temp_low": first.get("air_temp_low"), "air_temp_high": first.get("air_temp_high")}
