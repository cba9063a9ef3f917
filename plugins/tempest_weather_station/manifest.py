PLUGIN_MANIFEST = {
    "name": "tempest_weather_station",
    "display_name": "Tempest Weather Station",
    "description": "Live readings and forecast from your own Tempest station.",
    "version": "1",
    "module": "plugins.tempest_weather_station.plugin:TempestWeatherStationPlugin",
    # - http: Tempest REST API
    # - oauth: the station token is issued through Tempest's OAuth flow
    "capabilities": ["http", "oauth"],
    "oauth_provider": "tempest_weather_station",
    # Only needs the token stored in its own settings, nothing to refresh
    "oauth_settings_keys": [],
    "option_fields": {"tempest_weather_station_devices": "devices"},
    "form_fields": [
        {"keyname": "tempest_weather_station_devices", "field_type": "select", "name": "Device"},
        {"keyname": "units", "field_type": "select", "name": "Units", "options": [{"Imperial": "imperial"}, {"Metric": "metric"}]},
        {"keyname": "units_wind", "field_type": "select", "name": "Wind units", "options": ["mph", "kph", "mps", "kts"]},
        {"keyname": "units_precip", "field_type": "select", "name": "Precipitation units", "options": ["in", "mm", "cm"]},
        {
            "keyname": "forecast_headings",
            "field_type": "select",
            "name": "Forecast headings",
            "options": [{"Today / Tomorrow": "relative"}, {"Date": "absolute_date"}],
        },
    ],
}
