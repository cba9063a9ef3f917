"""pytest configuration for the GitHub commit graph plugin test suite.

Suppresses ``asyncio.sleep`` delays inside ``@with_retry`` decorated
functions so fetch retries run instantly.
"""

from __future__ import annotations

import pytest

from trmnl_plugin_sdk.testing import patch_retry_sleep


@pytest.fixture(autouse=True)
def _no_retry_sleep():
    with patch_retry_sleep():
        yield
