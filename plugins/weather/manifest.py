PLUGIN_MANIFEST = {
    "name": "weather",
    "display_name": "Weather",
    "description": "Current conditions and a two-day forecast for a latitude/longitude.",
    "version": "1",
    "module": "plugins.weather.plugin:WeatherPlugin",
    # - http: Tempest better_forecast endpoint
    # - credentials: shared Tempest API key resolved by the host
    "capabilities": ["http", "credentials"],
    "required_credentials": [{"service": "weather", "key": "tempest_api_key"}],
    "form_fields": [
        {"keyname": "lat_lon", "field_type": "string", "name": "Latitude,Longitude"},
        {"keyname": "units", "field_type": "select", "name": "Units", "options": [{"Imperial": "imperial"}, {"Metric": "metric"}]},
        {"keyname": "units_precip", "field_type": "select", "name": "Precipitation units", "options": ["in", "mm", "cm"]},
        {
            "keyname": "forecast_headings",
            "field_type": "select",
            "name": "Forecast headings",
            "options": [{"Today / Tomorrow": "relative"}, {"Date": "absolute_date"}],
        },
    ],
}
