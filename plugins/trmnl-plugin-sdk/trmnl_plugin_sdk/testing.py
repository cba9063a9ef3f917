"""Test scaffolding for TRMNL plugin development.

Provides :func:`patch_retry_sleep`, :class:`FakeHttpBuilder` (an
``httpx.MockTransport`` backed client with canned routes) and helpers to
build execution contexts and fixed clocks.

This module has **no** ``trmnl_api`` imports so the SDK can be used without
the host package.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx


@contextmanager
def patch_retry_sleep() -> Generator[AsyncMock, None, None]:
    """Suppress ``asyncio.sleep`` delays inside ``@with_retry`` decorated functions.

    Yields:
        The :class:`~unittest.mock.AsyncMock` replacing ``asyncio.sleep``, in case
        you want to assert on call count or arguments.
    """
    with patch("trmnl_plugin_sdk.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


def fixed_clock(moment: datetime) -> Callable[[], datetime]:
    """Return a clock that always reports ``moment``."""
    return lambda: moment


def make_trmnl_data(
    *,
    user_id: Any = 1,
    time_zone: str | None = "UTC",
    locale: str | None = "en",
    plugin_setting_id: Any = 1,
    created_at: str | None = None,
    oauth_tokens: dict[str, dict[str, str]] | None = None,
) -> dict[str, Any]:
    """Build the execution-context mapping a plugin is constructed with."""
    return {
        "user": {"id": user_id, "time_zone_iana": time_zone, "locale": locale},
        "plugin_settings": {"id": plugin_setting_id, "created_at": created_at},
        "oauth_tokens": oauth_tokens or {},
    }


def _strip_query(url: str) -> str:
    return url.split("?", 1)[0]


class FakeHttpBuilder:
    """Fluent builder for an ``httpx.AsyncClient`` that answers from canned routes.

    Usage::

        client = (
            FakeHttpBuilder()
            .with_json("GET", "https://api.example.com/items", {"items": []})
            .build()
        )
        plugin = MyPlugin(settings, trmnl_data, http_client=client)

    Routes match on ``(method, url)``. A route registered without a query
    string matches any query. Unmatched requests get a 404. Every request is
    recorded on :attr:`requests`.
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []

    def with_json(
        self,
        method: str,
        url: str,
        body: Any,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> FakeHttpBuilder:
        self._routes[(method.upper(), url)] = {
            "type": "response",
            "status_code": status_code,
            "content": json.dumps(body).encode(),
            "headers": {"content-type": "application/json", **(headers or {})},
        }
        return self

    def with_text(
        self,
        method: str,
        url: str,
        text: str,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> FakeHttpBuilder:
        self._routes[(method.upper(), url)] = {
            "type": "response",
            "status_code": status_code,
            "content": text.encode(),
            "headers": {"content-type": "text/plain", **(headers or {})},
        }
        return self

    def with_transport_error(self, method: str, url: str, message: str = "connection refused") -> FakeHttpBuilder:
        """Make requests to ``url`` fail before any response is received."""
        self._routes[(method.upper(), url)] = {"type": "error", "message": message}
        return self

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if _strip_query(str(r.url)) == _strip_query(url)]

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method.upper()
        full_url = str(request.url)
        route = self._routes.get((method, full_url)) or self._routes.get((method, _strip_query(full_url)))
        if route is None:
            return httpx.Response(404, text=f"no route for {method} {full_url}")
        if route["type"] == "error":
            raise httpx.ConnectError(route["message"], request=request)
        return httpx.Response(route["status_code"], content=route["content"], headers=route["headers"])

    def build(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handler))
