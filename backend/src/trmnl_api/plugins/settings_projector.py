"""Settings projection: turn caller-supplied settings into what a plugin reads.

Two rewrites happen on a copy of the settings:

- checkbox booleans become the strings ``"yes"`` / ``"no"``;
- for plugins backed by an OAuth provider, ``settings[key]`` is replaced by
  ``{"refresh_token": ..., "access_token": ...}``, the access token coming
  from the shared :class:`OAuthTokenCache`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..auth.oauth_token_cache import OAuthTokenCache, get_oauth_token_cache
from .base import ExecutionContext

logger = logging.getLogger(__name__)

# settings key -> OAuth provider whose tokens it receives
OAUTH_SETTINGS_PROVIDERS: dict[str, str] = {
    "google_analytics": "google",
    "youtube_analytics": "google",
    "google_calendar": "google",
    "todoist": "todoist",
}


def project_checkboxes(settings: Mapping[str, Any]) -> dict[str, Any]:
    projected = {}
    for key, value in settings.items():
        if value is True:
            value = "yes"
        elif value is False:
            value = "no"
        projected[key] = value
    return projected


class SettingsProjector:
    def __init__(self, token_cache: OAuthTokenCache | None = None):
        self._token_cache = token_cache or get_oauth_token_cache()

    async def project(
        self,
        plugin_identifier: str,
        settings: Mapping[str, Any],
        context: ExecutionContext,
        *,
        oauth_settings_keys: list[str] | None = None,
    ) -> dict[str, Any]:
        projected = project_checkboxes(settings)

        user_id = context.user.id
        if user_id is None or not context.oauth_tokens:
            return projected

        keys = oauth_settings_keys if oauth_settings_keys is not None else [plugin_identifier]
        for key in keys:
            provider = OAUTH_SETTINGS_PROVIDERS.get(key)
            if provider is None:
                continue
            refresh_token = context.refresh_token_for(provider)
            if not refresh_token:
                continue
            access_token = await self._token_cache.get_or_refresh(user_id, provider, refresh_token)
            injected: dict[str, Any] = {"refresh_token": refresh_token}
            if access_token:
                injected["access_token"] = access_token
            else:
                logger.warning("No access token for %s, injecting refresh token only", key)
            projected[key] = injected
        return projected
