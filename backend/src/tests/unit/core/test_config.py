"""Unit tests for Settings validators and credential resolution."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from trmnl_api.core.config import (
    Settings,
    credential_env_name,
    get_settings_instance,
    resolve_credential,
)


class TestSettingsValidators:
    """Tests for the Settings field validators."""

    def test_log_level_is_uppercased(self) -> None:
        assert Settings(TRMNL_LOG_LEVEL="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Log level must be one of"):
            Settings(TRMNL_LOG_LEVEL="chatty")

    def test_invalid_environment_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Environment must be one of"):
            Settings(TRMNL_ENVIRONMENT="qa")

    def test_log_format_is_lowercased(self) -> None:
        assert Settings(TRMNL_LOG_FORMAT="JSON").log_format == "json"

    def test_relative_plugins_root_resolves_against_repo(self) -> None:
        settings = Settings(TRMNL_PLUGINS_ROOT="plugins")
        root = Path(settings.plugins_root)
        assert root.is_absolute()
        assert (root / "ics_calendar" / "manifest.py").exists()

    def test_absolute_plugins_root_kept(self, tmp_path: Path) -> None:
        assert Settings(TRMNL_PLUGINS_ROOT=str(tmp_path)).plugins_root == str(tmp_path)

    def test_plugin_credentials_parsed_from_json(self) -> None:
        settings = Settings(TRMNL_PLUGIN_CREDENTIALS='{"google": {"client_id": "abc"}}')
        assert settings.plugin_credentials == {"google": {"client_id": "abc"}}

    def test_blank_plugin_credentials_are_empty(self) -> None:
        assert Settings(TRMNL_PLUGIN_CREDENTIALS="  ").plugin_credentials == {}


class TestSettingsInstance:
    def test_instance_reads_environment_once(self, fresh_settings) -> None:
        fresh_settings.setenv("TRMNL_PLUGIN_EXECUTION_TIMEOUT", "5")
        first = get_settings_instance()
        fresh_settings.setenv("TRMNL_PLUGIN_EXECUTION_TIMEOUT", "9")

        assert first.plugin_execution_timeout == 5.0
        assert get_settings_instance() is first


class TestResolveCredential:
    BASE = {
        "google": {"client_id": "base-id", "client_secret": ""},
        "github_commit_graph": {"token": "base-token"},
    }

    def test_env_name_uses_service_and_key(self) -> None:
        assert credential_env_name("google", "client_id") == "GOOGLE_CLIENT_ID"
        assert credential_env_name("my-service", "api_key") == "MY_SERVICE_API_KEY"

    def test_env_name_keeps_legacy_aliases(self) -> None:
        assert credential_env_name("github_commit_graph", "token") == "GITHUB_API_TOKEN"
        assert credential_env_name("app", "base_url") == "RAILS_BASE_URL"

    def test_environment_overrides_base(self) -> None:
        environ = {"GOOGLE_CLIENT_ID": "env-id"}
        assert resolve_credential("google", "client_id", environ=environ, base=self.BASE) == "env-id"

    def test_base_used_when_environment_silent(self) -> None:
        assert resolve_credential("github_commit_graph", "token", environ={}, base=self.BASE) == "base-token"

    def test_alias_environment_variable(self) -> None:
        environ = {"GITHUB_API_TOKEN": "ghp_env"}
        assert resolve_credential("github_commit_graph", "token", environ=environ, base=self.BASE) == "ghp_env"

    def test_missing_or_empty_is_none(self) -> None:
        assert resolve_credential("google", "client_secret", environ={}, base=self.BASE) is None
        assert resolve_credential("todoist", "client_id", environ={}, base=self.BASE) is None
        assert resolve_credential("google", "client_id", environ={"GOOGLE_CLIENT_ID": ""}, base={}) is None

    def test_defaults_to_configured_document(self, fresh_settings) -> None:
        fresh_settings.setenv("TRMNL_PLUGIN_CREDENTIALS", '{"todoist": {"client_id": "from-settings"}}')
        fresh_settings.delenv("TODOIST_CLIENT_ID", raising=False)

        assert resolve_credential("todoist", "client_id") == "from-settings"
