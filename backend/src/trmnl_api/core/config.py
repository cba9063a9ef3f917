"""Configuration management for the TRMNL plugin API.

Uses Pydantic Settings for type-safe, environment-based configuration.
Plugin credentials are resolved per ``(service, key)`` through
:func:`resolve_credential`: an environment override wins over the base
credentials document.
"""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
# Use override=True to ensure .env changes take effect immediately
load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # App configuration
    app_name: str = Field("TRMNL Plugin API", alias="TRMNL_APP_NAME")
    version: str = Field("0.1.0", alias="TRMNL_APP_VERSION")
    environment: str = Field("development", alias="TRMNL_ENVIRONMENT")
    debug: bool = Field(False, alias="TRMNL_DEBUG")
    base_url: str = Field("http://localhost:3000", alias="TRMNL_BASE_URL")

    # Logging configuration
    log_level: str = Field("INFO", alias="TRMNL_LOG_LEVEL")
    log_format: str = Field("text", alias="TRMNL_LOG_FORMAT")  # text or json
    log_dir: str | None = Field(None, alias="TRMNL_LOG_DIR")  # unset: console only

    # Plugins
    plugins_root: str = Field("plugins", alias="TRMNL_PLUGINS_ROOT")
    plugin_execution_timeout: float = Field(60.0, alias="TRMNL_PLUGIN_EXECUTION_TIMEOUT")

    # Outbound HTTP
    http_default_timeout: float = Field(30.0, alias="TRMNL_HTTP_TIMEOUT")

    # Base credentials document: {"service": {"key": "value"}}
    plugin_credentials: dict[str, dict[str, Any]] = Field(
        default_factory=dict, alias="TRMNL_PLUGIN_CREDENTIALS"
    )

    @staticmethod
    def _repo_root_from_this_file() -> Path:
        # <repo>/backend/src/trmnl_api/core/config.py
        here = Path(__file__).resolve()
        src_dir = here.parents[2]
        candidate_parent = src_dir.parent
        return candidate_parent.parent if candidate_parent.name == "backend" else candidate_parent

    @field_validator("plugins_root", mode="before")
    @classmethod
    def _resolve_plugins_root(cls, v: str) -> str:
        """Resolve a relative plugins directory against the repository root."""
        p = Path(v)
        if p.is_absolute():
            return str(p)
        return str((cls._repo_root_from_this_file() / p).resolve())

    @field_validator("plugin_credentials", mode="before")
    @classmethod
    def _parse_plugin_credentials(cls, v: Any) -> Any:
        """Accept the credentials document as a JSON string or a mapping."""
        if v is None:
            return {}
        if isinstance(v, str):
            if not v.strip():
                return {}
            return json.loads(v)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["text", "json"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment setting."""
        valid_environments = ["development", "test", "staging", "production"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


def get_settings() -> Settings:
    """Build a fresh settings instance from the environment."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance - will be created when first accessed
settings = None


def get_settings_instance() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global settings  # noqa: PLW0603
    if settings is None:
        settings = get_settings()
    return settings


def reset_settings_instance() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global settings  # noqa: PLW0603
    settings = None


# Environment names kept from the deployments that predate the generic
# SERVICE_KEY naming.
_ENV_ALIASES: dict[tuple[str, str], str] = {
    ("github_commit_graph", "token"): "GITHUB_API_TOKEN",
    ("app", "base_url"): "RAILS_BASE_URL",
    ("weather", "tempest_api_key"): "TEMPEST_API_KEY",
}


def credential_env_name(service: str, key: str) -> str:
    """Environment variable consulted first for ``(service, key)``."""
    alias = _ENV_ALIASES.get((service, key))
    if alias:
        return alias
    return f"{service}_{key}".upper().replace("-", "_")


def resolve_credential(
    service: str,
    key: str,
    *,
    environ: Mapping[str, str] | None = None,
    base: Mapping[str, Any] | None = None,
) -> str | None:
    """Return ``env_override(service, key) ?? base_config(service, key)``.

    Pure given ``environ`` and ``base``; both default to the process
    environment and the configured credentials document. Missing
    credentials yield ``None`` so callers can mark the feature unavailable.
    """
    env = os.environ if environ is None else environ
    value = env.get(credential_env_name(service, key))
    if value:
        return value

    if base is None:
        base = get_settings_instance().plugin_credentials
    section = base.get(service)
    if not isinstance(section, Mapping):
        return None
    found = section.get(key)
    if found is None or found == "":
        return None
    return str(found)
