"""
Plugin execution models: the immutable execution context handed to plugins,
the resolved entry-point kind, and the PluginResult returned to callers.
"""
from __future__ import annotations

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import TrmnlException


class UserInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str | int | None = None
    time_zone_iana: str | None = None
    locale: str | None = None


class PluginSettingsInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str | int | None = None
    created_at: str | None = None


class ExecutionContext(BaseModel):
    """Per-request context (``trmnl_data``); read-only for the whole call."""

    model_config = ConfigDict(frozen=True, extra="allow")

    user: UserInfo = Field(default_factory=UserInfo)
    plugin_settings: PluginSettingsInfo = Field(default_factory=PluginSettingsInfo)
    # {provider: {"refresh_token": ..., "access_token": ...}}
    oauth_tokens: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @classmethod
    def from_trmnl_data(cls, data: Mapping[str, Any] | None) -> ExecutionContext:
        return cls.model_validate(dict(data or {}))

    def refresh_token_for(self, provider: str) -> str | None:
        tokens = self.oauth_tokens.get(provider) or {}
        return tokens.get("refresh_token") or None

    def to_trmnl_data(self) -> dict[str, Any]:
        """Plain deep copy handed to plugin constructors."""
        return copy.deepcopy(self.model_dump(mode="json"))


class EntryPoint(str, Enum):
    LOCALS = "locals"
    EXECUTE = "execute"
    CALL = "__call__"


class PluginResult(BaseModel):
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    error_code: str | None = None
    status_code: int = 200

    @classmethod
    def ok(cls, data: dict[str, Any] | None = None) -> PluginResult:
        return cls(success=True, data=data or {})

    @classmethod
    def failure(cls, exc: TrmnlException) -> PluginResult:
        return cls(success=False, error=exc.message, error_code=exc.error_code, status_code=exc.status_code)
