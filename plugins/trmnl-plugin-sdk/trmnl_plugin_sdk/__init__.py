"""trmnl-plugin-sdk: runtime contract and test helpers for TRMNL plugins."""

from __future__ import annotations

from trmnl_plugin_sdk.contracts import assert_plugin_contract, find_entry_point, validate_manifest
from trmnl_plugin_sdk.errors import CalendarSourceError, PluginError
from trmnl_plugin_sdk.http import FetchResponse, UpstreamFetchError
from trmnl_plugin_sdk.retry import NonRetryableError, RetryableError, RetryConfig, with_retry
from trmnl_plugin_sdk.runtime import (
    PluginBase,
    line_separated_string_to_array,
    string_to_array,
    string_to_hash,
)
from trmnl_plugin_sdk.testing import FakeHttpBuilder, fixed_clock, make_trmnl_data, patch_retry_sleep

__all__ = [
    "assert_plugin_contract",
    "CalendarSourceError",
    "FakeHttpBuilder",
    "FetchResponse",
    "find_entry_point",
    "fixed_clock",
    "line_separated_string_to_array",
    "make_trmnl_data",
    "NonRetryableError",
    "patch_retry_sleep",
    "PluginBase",
    "PluginError",
    "RetryableError",
    "RetryConfig",
    "string_to_array",
    "string_to_hash",
    "UpstreamFetchError",
    "validate_manifest",
    "with_retry",
]
