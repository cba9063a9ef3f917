"""Response shapes returned by ``PluginBase.fetch`` / ``PluginBase.post``.

Upstream failures are not raised: the runtime hands back an
:class:`UpstreamFetchError`, which has the same shape as a successful
:class:`FetchResponse` but carries status 500 and an error body, so plugin
code can branch on ``response.ok`` instead of wrapping every call.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass(frozen=True)
class FetchResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    text: str = ""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error(self) -> str | None:
        return None

    def json(self) -> Any:
        """Parsed body; decodes ``text`` when the body was not JSON-typed."""
        if isinstance(self.body, (dict, list)):
            return self.body
        return json.loads(self.text)

    def __getitem__(self, key: str) -> Any:
        return getattr(self, key)

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> FetchResponse:
        text = response.text
        body: Any = text
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            try:
                body = response.json()
            except ValueError:
                body = text
        return cls(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=body,
            text=text,
            url=str(response.request.url),
        )


@dataclass(frozen=True)
class UpstreamFetchError(FetchResponse):
    """Returned instead of raising when every attempt to reach a URL failed."""

    message: str = ""

    @property
    def error(self) -> str | None:
        return self.message

    @classmethod
    def build(cls, url: str, message: str) -> UpstreamFetchError:
        return cls(
            status_code=500,
            headers={},
            body={"s": "error", "errmsg": message},
            text="",
            url=url,
            message=message,
        )
