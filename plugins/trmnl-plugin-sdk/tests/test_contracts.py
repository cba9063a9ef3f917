"""Tests for trmnl_plugin_sdk.contracts."""

from __future__ import annotations

import warnings

import jsonschema
import pytest

from trmnl_plugin_sdk import PluginBase
from trmnl_plugin_sdk.contracts import assert_plugin_contract, find_entry_point, validate_manifest

_VALID_MANIFEST = {
    "name": "feed_plugin",
    "version": "1",
    "module": "plugins.feed_plugin.plugin:FeedPlugin",
    "capabilities": ["http"],
    "option_fields": {"feed_devices": "devices"},
    "form_fields": [{"keyname": "url", "field_type": "url"}],
}


class FeedPlugin(PluginBase):
    async def locals(self):
        return {}

    @classmethod
    async def devices(cls, access_token, *, http_client=None):
        return []


# ---------------------------------------------------------------------------
# validate_manifest
# ---------------------------------------------------------------------------


def test_valid_manifest_passes() -> None:
    validate_manifest(_VALID_MANIFEST)


@pytest.mark.parametrize(
    "patch",
    [
        {"name": "Feed Plugin"},
        {"module": "no_class_separator"},
        {"capabilities": ["filesystem"]},
        {"required_credentials": [{"service": "github"}]},
        {"form_fields": [{"keyname": "url"}]},
    ],
    ids=["name", "module", "capability", "credential", "form-field"],
)
def test_invalid_manifests_rejected(patch) -> None:
    with pytest.raises(jsonschema.ValidationError):
        validate_manifest({**_VALID_MANIFEST, **patch})


def test_missing_required_key() -> None:
    manifest = {k: v for k, v in _VALID_MANIFEST.items() if k != "version"}
    with pytest.raises(jsonschema.ValidationError, match="'version' is a required property"):
        validate_manifest(manifest)


# ---------------------------------------------------------------------------
# find_entry_point
# ---------------------------------------------------------------------------


def test_inherited_base_locals_does_not_count() -> None:
    class Bare(PluginBase):
        pass

    assert find_entry_point(Bare) is None


def test_subclass_inherits_producer() -> None:
    class Child(FeedPlugin):
        pass

    assert find_entry_point(Child) == "locals"


# ---------------------------------------------------------------------------
# assert_plugin_contract
# ---------------------------------------------------------------------------


def test_contract_passes() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert_plugin_contract(FeedPlugin, manifest=_VALID_MANIFEST)


def test_class_name_must_match_manifest() -> None:
    class OtherPlugin(FeedPlugin):
        pass

    with pytest.raises(AssertionError, match="names class 'FeedPlugin'"):
        assert_plugin_contract(OtherPlugin, manifest=_VALID_MANIFEST)


def test_invalid_manifest_is_assertion_error() -> None:
    with pytest.raises(AssertionError, match="Manifest is invalid"):
        assert_plugin_contract(FeedPlugin, manifest={"name": "feed_plugin"})


def test_missing_producer() -> None:
    class FeedPlugin(PluginBase):  # noqa: F811
        pass

    with pytest.raises(AssertionError, match="implements none of"):
        assert_plugin_contract(FeedPlugin, manifest=_VALID_MANIFEST)


def test_sync_producer_warns() -> None:
    class FeedPlugin:  # noqa: F811
        def execute(self, settings):
            return {}

        @classmethod
        async def devices(cls, access_token, *, http_client=None):
            return []

    with pytest.warns(UserWarning, match="synchronous"):
        assert_plugin_contract(FeedPlugin, manifest=_VALID_MANIFEST)


def test_option_field_must_name_a_method() -> None:
    manifest = {**_VALID_MANIFEST, "option_fields": {"feed_devices": "list_devices"}}
    with pytest.raises(AssertionError, match="'list_devices'"):
        assert_plugin_contract(FeedPlugin, manifest=manifest)


def test_manifest_discovery_needs_a_package() -> None:
    with pytest.raises(AssertionError, match="Cannot discover manifest"):
        assert_plugin_contract(FeedPlugin)
