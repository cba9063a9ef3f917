"""Per-(user, provider) cache of short-lived OAuth access tokens.

Plugins receive long-lived refresh tokens in their execution context and need
a fresh access token for each provider call. Exchanging the refresh token on
every render is slow and rate limited, so access tokens are cached here:

- an entry is only served while ``now + REFRESH_BUFFER < expires_at``;
- a refreshed token is stored with a fixed ``TOKEN_VALIDITY`` regardless of
  the provider's ``expires_in``;
- a single global lock covers read, check, refresh and write, so refreshes
  for different users are serialized too;
- refresh failures are logged and reported as ``None``, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from ..core.config import resolve_credential
from ..core.exceptions import OAuthRefreshError
from ..core.http_client import get_http_client

logger = logging.getLogger(__name__)

REFRESH_BUFFER = timedelta(minutes=10)
TOKEN_VALIDITY = timedelta(minutes=50)
CLEANUP_THRESHOLD = 50


@dataclass(frozen=True)
class OAuthProvider:
    name: str
    token_url: str


OAUTH_PROVIDERS: dict[str, OAuthProvider] = {
    "google": OAuthProvider(name="google", token_url="https://oauth2.googleapis.com/token"),
    "todoist": OAuthProvider(name="todoist", token_url="https://todoist.com/oauth/access_token"),
}


def register_provider(name: str, token_url: str) -> OAuthProvider:
    """Add (or replace) a provider that refreshes through the standard grant."""
    provider = OAuthProvider(name=name, token_url=token_url)
    OAUTH_PROVIDERS[name] = provider
    return provider


@dataclass
class CachedToken:
    access_token: str
    expires_at: datetime
    created_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now + REFRESH_BUFFER < self.expires_at


Refresher = Callable[[str, str], Awaitable[str]]


class OAuthTokenCache:
    """Caches access tokens keyed by ``(user_id, provider)``."""

    def __init__(
        self,
        *,
        refresher: Refresher | None = None,
        clock: Callable[[], datetime] | None = None,
        http_client: httpx.AsyncClient | None = None,
        providers: dict[str, OAuthProvider] | None = None,
    ) -> None:
        self._tokens: dict[tuple[str, str], CachedToken] = {}
        self._lock = asyncio.Lock()
        self._refresher = refresher or self.refresh_access_token
        self._clock = clock or (lambda: datetime.now(UTC))
        self._http_client = http_client
        self._providers = OAUTH_PROVIDERS if providers is None else providers

    async def get_or_refresh(self, user_id: Any, provider: str, refresh_token: str) -> str | None:
        """Return a usable access token, refreshing it when missing or near expiry."""
        cache_key = (str(user_id), provider)
        async with self._lock:
            now = self._clock()
            cached = self._tokens.get(cache_key)
            if cached is not None and cached.is_valid(now):
                logger.debug("OAuth token cache hit", extra={"user_id": str(user_id), "provider": provider})
                return cached.access_token

            try:
                access_token = await self._refresher(provider, refresh_token)
            except OAuthRefreshError as e:
                logger.error(
                    "OAuth token refresh failed",
                    extra={"user_id": str(user_id), "provider": provider, "reason": e.details.get("reason")},
                )
                return None
            except Exception:
                logger.exception(
                    "Unexpected error refreshing OAuth token",
                    extra={"user_id": str(user_id), "provider": provider},
                )
                return None

            now = self._clock()
            self._tokens[cache_key] = CachedToken(
                access_token=access_token,
                expires_at=now + TOKEN_VALIDITY,
                created_at=now,
            )
            logger.debug("OAuth token refreshed", extra={"user_id": str(user_id), "provider": provider})
            self._cleanup_expired(now)
            return access_token

    async def refresh_access_token(self, provider: str, refresh_token: str) -> str:
        """Exchange ``refresh_token`` at the provider's token endpoint."""
        config = self._providers.get(provider)
        if config is None:
            raise OAuthRefreshError(provider, "unknown provider")

        client_id = resolve_credential(provider, "client_id")
        client_secret = resolve_credential(provider, "client_secret")
        if not client_id or not client_secret:
            raise OAuthRefreshError(provider, "client credentials are not configured")

        form = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        client = self._http_client or await get_http_client()
        try:
            resp = await client.post(
                config.token_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise OAuthRefreshError(provider, f"request error: {e}") from e

        if resp.status_code >= 400:
            raise OAuthRefreshError(provider, f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            body = resp.json()
        except ValueError as e:
            raise OAuthRefreshError(provider, "token response is not JSON") from e

        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise OAuthRefreshError(provider, "token response missing access_token")
        return str(token)

    def _cleanup_expired(self, now: datetime) -> None:
        # Caller holds the lock
        if len(self._tokens) < CLEANUP_THRESHOLD:
            return
        expired = [key for key, token in self._tokens.items() if token.expires_at < now]
        for key in expired:
            del self._tokens[key]
        logger.debug("OAuth token cache cleanup removed %d entries", len(expired))

    def get_stats(self) -> dict[str, Any]:
        now = self._clock()
        return {
            "entries": len(self._tokens),
            "valid": sum(1 for token in self._tokens.values() if token.is_valid(now)),
        }

    def clear(self) -> None:
        self._tokens.clear()


# Global cache instance
oauth_token_cache = OAuthTokenCache()


def get_oauth_token_cache() -> OAuthTokenCache:
    """Get the process-wide OAuth token cache."""
    return oauth_token_cache
