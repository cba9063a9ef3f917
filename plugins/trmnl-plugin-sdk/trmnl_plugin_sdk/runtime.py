"""Runtime base class every TRMNL plugin derives from.

A plugin is constructed once per execution with the projected settings and
the execution context (``trmnl_data``) and implements exactly one producer:

    class MyPlugin(PluginBase):
        async def locals(self) -> dict:
            response = await self.fetch("https://example.com/feed.json")
            return {"items": response.body if response.ok else []}

Everything here is side-effect free apart from outbound HTTP; plugins must
not import host internals.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from dateutil import parser as date_parser

from .http import FetchResponse, UpstreamFetchError
from .retry import RetryableError, RetryConfig, with_retry

logger = logging.getLogger(__name__)

FETCH_RETRIES = 3
FETCH_BACKOFF_SECONDS = 0.5
DEFAULT_BASE_URL = "http://localhost:3000"

CredentialResolver = Callable[[str, str], "str | None"]


# ---------------------------------------------------------------------------
# String helpers
# ---------------------------------------------------------------------------


def string_to_array(value: str | None, limit: int | None = None) -> list[str]:
    """Split a comma-separated string into trimmed, non-empty items."""
    if not value:
        return []
    items = [part.strip() for part in value.split(",") if part.strip()]
    return items[:limit] if limit else items


def line_separated_string_to_array(value: str | None, limit: int | None = None) -> list[str]:
    """Split a newline-separated string into trimmed, non-empty items."""
    if not value:
        return []
    items = [part.strip() for part in re.split(r"[\r\n]+", value) if part.strip()]
    return items[:limit] if limit else items


def string_to_hash(value: str | None) -> dict[str, str]:
    """Parse ``key=value&key2=value2`` (used for user supplied HTTP headers)."""
    if not value:
        return {}
    result: dict[str, str] = {}
    for pair in value.split("&"):
        key, sep, val = pair.partition("=")
        if sep and key.strip():
            result[key.strip()] = val.strip()
    return result


# ---------------------------------------------------------------------------
# Context views
# ---------------------------------------------------------------------------


class UserContext:
    """The requesting user's timezone, locale and clock."""

    def __init__(self, data: Mapping[str, Any], clock: Callable[[], datetime]) -> None:
        self._data = data
        self._clock = clock

    @property
    def id(self) -> Any:
        return self._data.get("id")

    @property
    def tz(self) -> str:
        return self._data.get("time_zone_iana") or "UTC"

    @property
    def zone(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.tz)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown user timezone %r, falling back to UTC", self.tz)
            return ZoneInfo("UTC")

    @property
    def locale(self) -> str:
        return self._data.get("locale") or "en"

    @property
    def datetime_now(self) -> datetime:
        """Current time in the user's timezone."""
        return self._clock().astimezone(self.zone)


class PluginSettingsContext:
    """Metadata about the configured plugin instance."""

    def __init__(self, data: Mapping[str, Any], clock: Callable[[], datetime]) -> None:
        self._data = data
        self._clock = clock

    @property
    def id(self) -> Any:
        return self._data.get("id")

    @property
    def created_at(self) -> datetime:
        raw = self._data.get("created_at")
        if not raw:
            return self._clock()
        if isinstance(raw, datetime):
            return raw
        try:
            return date_parser.parse(str(raw))
        except (ValueError, OverflowError):
            return self._clock()


class PluginMetadata:
    """Plugin keyname and the account fields its form declares."""

    def __init__(self, keyname: str, form_fields: list[dict[str, Any]] | None) -> None:
        self.keyname = keyname
        self._form_fields = form_fields or []

    @property
    def account_fields(self) -> list[dict[str, Any]]:
        fields = copy.deepcopy(self._form_fields)
        for field in fields:
            options = field.get("options")
            if field.get("field_type") == "select" and isinstance(options, list):
                # {"US Dollar (USD)": "USD"} -> "USD"
                field["options"] = [
                    next(iter(option.values()), None) if isinstance(option, dict) else option
                    for option in options
                ]
        return fields


# ---------------------------------------------------------------------------
# Plugin base
# ---------------------------------------------------------------------------


class PluginBase:
    """Base class for plugins; subclasses override :meth:`locals`."""

    # Overrides the manifest name when one class backs several plugins
    keyname: ClassVar[str | None] = None

    def __init__(
        self,
        settings: Mapping[str, Any] | None = None,
        trmnl_data: Mapping[str, Any] | None = None,
        *,
        manifest: Mapping[str, Any] | None = None,
        http_client: httpx.AsyncClient | None = None,
        credentials: CredentialResolver | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = dict(settings or {})
        self._trmnl_data = dict(trmnl_data or {})
        self._manifest = dict(manifest or {})
        self._http_client = http_client
        self._credentials = credentials
        self._clock = clock or (lambda: datetime.now(UTC))

    async def locals(self) -> dict[str, Any]:
        raise NotImplementedError(f"{type(self).__name__} must implement locals()")

    # -- settings -----------------------------------------------------------

    @property
    def settings(self) -> dict[str, Any]:
        return self._settings

    def setting(self, key: str | Enum, default: Any = None) -> Any:
        """Return a setting; ``None`` and ``False`` fall back to ``default``."""
        name = key.value if isinstance(key, Enum) else key
        value = self._settings.get(str(name))
        if value is None or value is False:
            return default
        return value

    # -- context ------------------------------------------------------------

    @property
    def user(self) -> UserContext:
        return UserContext(self._trmnl_data.get("user") or {}, self._clock)

    @property
    def plugin_settings(self) -> PluginSettingsContext:
        return PluginSettingsContext(self._trmnl_data.get("plugin_settings") or {}, self._clock)

    @property
    def plugin_keyname(self) -> str:
        if type(self).keyname:
            return type(self).keyname  # type: ignore[return-value]
        if self._manifest.get("name"):
            return str(self._manifest["name"])
        return re.sub(r"(?<!^)(?=[A-Z])", "_", type(self).__name__).lower()

    @property
    def plugin(self) -> PluginMetadata:
        return PluginMetadata(self.plugin_keyname, self._manifest.get("form_fields"))

    @property
    def locale(self) -> str:
        return self.user.locale

    def current_time(self) -> datetime:
        return self._clock()

    @staticmethod
    def format_time(value: datetime, fmt: str = "%I:%M %p") -> str:
        return value.strftime(fmt)

    # -- credentials --------------------------------------------------------

    def credential(self, key: str, service: str | None = None) -> str | None:
        """Resolve a host credential, ``None`` when it is not configured."""
        if self._credentials is None:
            return None
        return self._credentials(service or self.plugin_keyname, key)

    @property
    def base_url(self) -> str:
        return self.credential("base_url", service="app") or DEFAULT_BASE_URL

    # -- string helpers -----------------------------------------------------

    string_to_array = staticmethod(string_to_array)
    line_separated_string_to_array = staticmethod(line_separated_string_to_array)
    string_to_hash = staticmethod(string_to_hash)

    # -- HTTP ---------------------------------------------------------------

    async def _send(self, method: str, url: str, **kwargs: Any) -> FetchResponse:
        if self._http_client is not None:
            response = await self._http_client.request(method, url, **kwargs)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await client.request(method, url, **kwargs)
        return FetchResponse.from_httpx(response)

    async def fetch(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30,
        query: Mapping[str, Any] | None = None,
        should_retry: bool = True,
    ) -> FetchResponse:
        """GET ``url``; transport failures come back as :class:`UpstreamFetchError`."""
        config = RetryConfig(
            max_retries=FETCH_RETRIES if should_retry else 0,
            base_delay=FETCH_BACKOFF_SECONDS,
            strategy="linear",
        )
        attempts = 0

        @with_retry(config)
        async def _attempt() -> FetchResponse:
            nonlocal attempts
            attempts += 1
            try:
                return await self._send(
                    "GET", url, headers=dict(headers or {}), params=dict(query or {}), timeout=timeout
                )
            except httpx.TransportError as e:
                logger.warning(
                    "HTTP request failed (attempt %d/%d): %s", attempts, config.max_retries + 1, e
                )
                raise RetryableError(str(e)) from e

        try:
            response = await _attempt()
        except RetryableError as e:
            logger.error("Failed to fetch from %s after %d attempts: %s", url, attempts, e)
            return UpstreamFetchError.build(url, f"HTTP request failed: {e}")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Failed to fetch from %s: %s", url, e)
            return UpstreamFetchError.build(url, f"HTTP request failed: {e}")

        logger.debug("Fetched %s", url, extra={"status_code": response.status_code})
        return response

    async def post(
        self,
        url: str,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30,
    ) -> FetchResponse:
        """POST without retries; failures come back as :class:`UpstreamFetchError`."""
        try:
            response = await self._send(
                "POST", url, json=json, data=data, headers=dict(headers or {}), timeout=timeout
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Failed to post to %s: %s", url, e)
            return UpstreamFetchError.build(url, f"HTTP request failed: {e}")
        logger.debug("Posted %s", url, extra={"status_code": response.status_code})
        return response
