"""
Shared pytest fixtures and path setup for unit tests.
"""

import os
import sys
from pathlib import Path

# Set the environment BEFORE any trmnl_api imports so Settings validates
# against test defaults.
os.environ.setdefault("TRMNL_ENVIRONMENT", "test")

# Add backend/src to sys.path so trmnl_api.* imports work when running pytest from repo root.
PROJECT_SRC = Path(__file__).resolve().parents[2]
if str(PROJECT_SRC) not in sys.path:
    sys.path.insert(0, str(PROJECT_SRC))

import pytest

from trmnl_api.core.config import reset_settings_instance


@pytest.fixture
def fresh_settings(monkeypatch):
    """Re-read Settings from the (monkeypatched) environment for one test."""
    reset_settings_instance()
    yield monkeypatch
    reset_settings_instance()
