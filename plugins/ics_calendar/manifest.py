PLUGIN_MANIFEST = {
    "name": "ics_calendar",
    "display_name": "ICS Calendar",
    "description": "Upcoming events merged from one or more iCalendar (.ics) feeds.",
    "version": "1",
    # Dotted import path used by the plugin loader to resolve the class.
    "module": "plugins.ics_calendar.plugin:IcsCalendarPlugin",
    # - http: fetches each configured feed
    "capabilities": ["http"],
    "form_fields": [
        {"keyname": "ics_url", "field_type": "text", "name": "ICS URLs (one per line)"},
        {"keyname": "headers", "field_type": "string", "name": "Request headers (key=value&key2=value2)"},
        {
            "keyname": "event_layout",
            "field_type": "select",
            "name": "Layout",
            "options": [
                {"List": "default"},
                {"Today only": "today_only"},
                {"Schedule": "schedule"},
                {"Week": "week"},
                {"Month": "month"},
                {"Rolling month": "rolling_month"},
            ],
        },
        {"keyname": "include_description", "field_type": "select", "name": "Include description", "options": ["yes", "no"]},
        {"keyname": "include_event_time", "field_type": "select", "name": "Include event time", "options": ["yes", "no"]},
        {
            "keyname": "first_day",
            "field_type": "select",
            "name": "First day of week",
            "options": ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"],
        },
        {"keyname": "time_format", "field_type": "select", "name": "Time format", "options": [{"12 hour": "am/pm"}, {"24 hour": "24h"}]},
        {"keyname": "date_format", "field_type": "string", "name": "Date heading format"},
        {"keyname": "days_to_show", "field_type": "number", "name": "Days to show"},
        {"keyname": "scroll_time", "field_type": "time", "name": "Week view start time"},
        {"keyname": "scroll_time_end", "field_type": "time", "name": "Week view end time"},
        {"keyname": "ignore_phrases_exact_match", "field_type": "text", "name": "Ignore events titled (one per line)"},
        {
            "keyname": "event_status_filter",
            "field_type": "select",
            "name": "Event status",
            "options": [{"All events": "all"}, {"Confirmed only": "confirmed_only"}],
        },
        {"keyname": "zoom_mode", "field_type": "select", "name": "Zoom mode", "options": ["yes", "no"]},
    ],
}
