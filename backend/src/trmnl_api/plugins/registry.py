"""Plugins registry: maps plugin identifiers to loaded plugin classes.
Discovered manifests are loaded lazily and cached in-process.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from trmnl_plugin_sdk.contracts import validate_manifest

from ..core.config import resolve_credential
from ..core.exceptions import PluginNotFoundError, PluginUnavailableError
from .loader import LoadedPlugin, PluginLoader, PluginRecord, resolve_entry_point

logger = logging.getLogger(__name__)


class PluginRegistry:
    def __init__(
        self,
        loader: PluginLoader | None = None,
        credential_resolver: Callable[[str, str], str | None] = resolve_credential,
    ):
        self._loader = loader
        self._credential_resolver = credential_resolver
        self._manifest: dict[str, PluginRecord] = {}
        self._cache: dict[str, LoadedPlugin] = {}
        self._static: dict[str, LoadedPlugin] = {}

    @property
    def loader(self) -> PluginLoader:
        if self._loader is None:
            self._loader = PluginLoader()
        return self._loader

    def refresh(self) -> None:
        self._manifest = self.loader.discover()
        self._cache.clear()

    def get_manifest(self, refresh_if_empty: bool = True) -> dict[str, PluginRecord]:
        if refresh_if_empty and not self._manifest:
            self.refresh()
        return dict(self._manifest)

    def register(self, plugin_cls: type, manifest: dict[str, Any]) -> LoadedPlugin:
        """Register an in-process plugin class without discovering it from disk."""
        validate_manifest(manifest)
        record = PluginRecord.from_manifest(manifest)
        loaded = LoadedPlugin(record=record, plugin_cls=plugin_cls, entry_point=resolve_entry_point(record, plugin_cls))
        self._static[record.name] = loaded
        return loaded

    def missing_credentials(self, record: PluginRecord) -> list[str]:
        return [
            f"{service}.{key}"
            for service, key in record.required_credentials
            if not self._credential_resolver(service, key)
        ]

    def _lookup(self, name: str) -> PluginRecord:
        if name in self._static:
            return self._static[name].record
        record = self.get_manifest().get(name)
        if record is None:
            logger.warning("Plugin '%s' not found in plugin manifest(s)", name)
            raise PluginNotFoundError(name)
        return record

    def resolve(self, name: str) -> LoadedPlugin:
        """Return the loaded plugin or raise not found / unavailable / contract errors."""
        record = self._lookup(name)
        missing = self.missing_credentials(record)
        if missing:
            logger.warning("Plugin '%s' unavailable, missing credentials: %s", name, missing)
            raise PluginUnavailableError(name, missing)
        if name in self._static:
            return self._static[name]
        if name not in self._cache:
            self._cache[name] = self.loader.load(record)
        return self._cache[name]

    def list_plugins(self) -> list[dict[str, Any]]:
        """Metadata for every plugin whose credentials are configured."""
        records = {**self.get_manifest(), **{n: p.record for n, p in self._static.items()}}
        return [
            record.to_metadata()
            for name, record in sorted(records.items())
            if not self.missing_credentials(record)
        ]


REGISTRY = PluginRegistry()
