"""Dynamic form-field options (device lists, projects, calendars, ...).

A plugin declares which of its form fields have provider-backed options in
its manifest (``option_fields: {field_name: classmethod_name}``). The
classmethod is awaited with an access token and returns ``{label: value}``
mappings, which are normalized to ``[{"label", "value"}]`` and cached for a
few minutes per (user, plugin, field).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from ..auth.oauth_token_cache import OAuthTokenCache, get_oauth_token_cache
from ..core.cache import OptionsCache, get_options_cache
from ..core.exceptions import PluginContractError
from ..core.http_client import HTTPClientManager, get_http_client_manager
from .registry import REGISTRY, PluginRegistry

logger = logging.getLogger(__name__)


def normalize_options(raw: Any) -> list[dict[str, str]]:
    """Flatten ``[{label: value}, "plain", {"label": .., "value": ..}]`` into label/value pairs."""
    if isinstance(raw, Mapping):
        raw = [{label: value} for label, value in raw.items()]
    options: list[dict[str, str]] = []
    for item in raw or []:
        if isinstance(item, Mapping):
            if set(item) == {"label", "value"}:
                options.append({"label": str(item["label"]), "value": str(item["value"])})
                continue
            options.extend({"label": str(label), "value": str(value)} for label, value in item.items())
        else:
            options.append({"label": str(item), "value": str(item)})
    return options


class PluginOptionsService:
    def __init__(
        self,
        registry: PluginRegistry | None = None,
        cache: OptionsCache | None = None,
        token_cache: OAuthTokenCache | None = None,
        http_client_manager: HTTPClientManager | None = None,
    ):
        self._registry = registry or REGISTRY
        self._cache = cache or get_options_cache()
        self._token_cache = token_cache or get_oauth_token_cache()
        self._http = http_client_manager or get_http_client_manager()

    async def _access_token(self, user_id: Any, provider: str, tokens: Mapping[str, Any]) -> str | None:
        if tokens.get("access_token"):
            return str(tokens["access_token"])
        refresh_token = tokens.get("refresh_token")
        if not refresh_token:
            return None
        return await self._token_cache.get_or_refresh(user_id if user_id is not None else "anonymous", provider, refresh_token)

    async def fetch(
        self,
        plugin_identifier: str,
        field_name: str,
        oauth_tokens: Mapping[str, Any] | None = None,
        user: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Return ``{options, field_name, plugin, cached_at, from_cache}`` or ``None``.

        Raises PluginNotFoundError for unknown plugins and PluginContractError
        when the field has no options provider.
        """
        user_id = (user or {}).get("id")
        cached = self._cache.get(user_id, plugin_identifier, field_name)
        if cached is not None:
            logger.info("Returning cached options for %s.%s", plugin_identifier, field_name)
            return self._payload(plugin_identifier, field_name, cached["options"], cached["cached_at"], True)

        loaded = self._registry.resolve(plugin_identifier)
        method_name = loaded.record.option_fields.get(field_name)
        method = getattr(loaded.plugin_cls, method_name, None) if method_name else None
        if not callable(method):
            raise PluginContractError(plugin_identifier, f"does not support fetching {field_name}")

        provider = loaded.record.oauth_provider or plugin_identifier
        access_token = await self._access_token(user_id, provider, (oauth_tokens or {}).get(provider) or {})
        if not access_token:
            logger.warning("No access token available for %s options", plugin_identifier)
            return None

        try:
            raw = await method(access_token, http_client=await self._http.get_client())
        except Exception as e:  # noqa: BLE001
            logger.exception("Failed to fetch options for %s.%s: %s", plugin_identifier, field_name, e)
            return None
        if raw is None:
            return None

        options = normalize_options(raw)
        cached_at = self._cache.set(user_id, plugin_identifier, field_name, options)
        return self._payload(plugin_identifier, field_name, options, cached_at, False)

    @staticmethod
    def _payload(plugin: str, field_name: str, options: list, cached_at: float, from_cache: bool) -> dict[str, Any]:
        return {
            "options": options,
            "field_name": field_name,
            "plugin": plugin,
            "cached_at": datetime.fromtimestamp(cached_at, UTC).isoformat(),
            "from_cache": from_cache,
        }
