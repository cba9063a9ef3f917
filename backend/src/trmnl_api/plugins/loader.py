"""
Plugins loader: discovers local plugins under plugins/* directories with a manifest.
- Each plugin folder provides a manifest.py with a PLUGIN_MANIFEST dict:
  {"name": str, "version": str, "module": "plugins.pkg.plugin:PluginClass", ...}
- The producer method is resolved once, when the plugin is loaded.
"""
from __future__ import annotations

import importlib
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
from trmnl_plugin_sdk.contracts import find_entry_point, validate_manifest

from ..core.config import get_settings_instance
from ..core.exceptions import PluginContractError
from .base import EntryPoint

logger = logging.getLogger(__name__)


@dataclass
class PluginRecord:
    name: str
    version: str
    entry: str  # dotted path "package.module:Class"
    display_name: str | None = None
    description: str | None = None
    capabilities: list[str] = field(default_factory=list)
    form_fields: list[dict[str, Any]] = field(default_factory=list)
    # (service, key) pairs resolved through resolve_credential
    required_credentials: list[tuple[str, str]] = field(default_factory=list)
    oauth_provider: str | None = None
    oauth_settings_keys: list[str] | None = None
    # field name -> classmethod that lists its options
    option_fields: dict[str, str] = field(default_factory=dict)
    manifest: dict[str, Any] = field(default_factory=dict)
    plugin_dir: Path | None = None
    violations: list[str] | None = None

    @classmethod
    def from_manifest(cls, manifest: dict[str, Any], plugin_dir: Path | None = None) -> PluginRecord:
        return cls(
            name=manifest["name"],
            version=str(manifest.get("version", "0")),
            entry=manifest["module"],
            display_name=manifest.get("display_name"),
            description=manifest.get("description"),
            capabilities=list(manifest.get("capabilities") or []),
            form_fields=list(manifest.get("form_fields") or []),
            required_credentials=[
                (c["service"], c["key"]) for c in manifest.get("required_credentials") or []
            ],
            oauth_provider=manifest.get("oauth_provider"),
            oauth_settings_keys=manifest.get("oauth_settings_keys"),
            option_fields=dict(manifest.get("option_fields") or {}),
            manifest=dict(manifest),
            plugin_dir=plugin_dir,
        )

    def to_metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name or self.name,
            "description": self.description or "",
            "version": self.version,
            "form_fields": self.form_fields,
            "oauth_provider": self.oauth_provider,
            "option_fields": sorted(self.option_fields),
        }


@dataclass
class LoadedPlugin:
    record: PluginRecord
    plugin_cls: type
    entry_point: EntryPoint


def resolve_entry_point(record: PluginRecord, plugin_cls: type) -> EntryPoint:
    """Pick the producer once: locals, then execute(settings), then __call__(settings)."""
    name = find_entry_point(plugin_cls)
    if name is None:
        raise PluginContractError(record.name, "implements neither locals(), execute(settings) nor __call__(settings)")
    return EntryPoint(name)


class PluginLoader:
    def __init__(self, *, plugins_dir: Path | None = None):
        if plugins_dir is None:
            plugins_dir = Path(get_settings_instance().plugins_root)
        self.plugins_dir = plugins_dir
        # Manifests are imported as "<plugins_dir.name>.<plugin>.manifest"
        self.package = plugins_dir.name
        import_root = str(plugins_dir.parent)
        if import_root not in sys.path:
            sys.path.insert(0, import_root)
        logger.info("Plugins loader using plugins_dir=%s", self.plugins_dir)

    def _static_scan_for_violations(self, plugin_dir: Path) -> list[str]:
        violations: list[str] = []
        # Deny host-internal imports and direct HTTP clients from plugins
        deny = (
            "import trmnl_api",
            "from trmnl_api",
            "import requests",
            "import urllib3",
            "urllib.request",
        )
        for p in plugin_dir.rglob("*.py"):
            if p.name == "conftest.py" or p.name.startswith("test_"):
                continue
            try:
                txt = p.read_text(encoding="utf-8", errors="ignore")
            except OSError:
                continue
            for d in deny:
                if d in txt:
                    violations.append(f"{p.name}: {d}")
        return violations

    def discover(self) -> dict[str, PluginRecord]:
        records: dict[str, PluginRecord] = {}
        if not self.plugins_dir.exists():
            logger.warning("Plugins directory %s does not exist", self.plugins_dir)
            return records
        for child in sorted(self.plugins_dir.iterdir()):
            if not child.is_dir() or not (child / "manifest.py").exists():
                continue
            try:
                module = importlib.import_module(f"{self.package}.{child.name}.manifest")
                m = getattr(module, "PLUGIN_MANIFEST", None)
                if not m:
                    continue
                validate_manifest(m)
            except jsonschema.ValidationError as e:
                logger.warning("Skipping plugin %s: invalid manifest: %s", child.name, e.message)
                continue
            except Exception as e:  # noqa: BLE001
                logger.exception("Failed loading manifest for %s: %s", child.name, e)
                continue
            rec = PluginRecord.from_manifest(m, plugin_dir=child)
            rec.violations = self._static_scan_for_violations(child)
            records[rec.name] = rec
        return records

    def load(self, record: PluginRecord) -> LoadedPlugin:
        if record.violations:
            raise PluginContractError(record.name, f"uses disallowed imports: {record.violations}")
        module_path, class_name = record.entry.split(":", 1)
        try:
            mod = importlib.import_module(module_path)
        except ImportError as e:
            raise PluginContractError(record.name, f"cannot import {module_path}: {e}") from e
        plugin_cls = getattr(mod, class_name, None)
        if not isinstance(plugin_cls, type):
            raise PluginContractError(record.name, f"{record.entry} is not a class")
        entry_point = resolve_entry_point(record, plugin_cls)
        logger.debug("Loaded plugin %s (%s, entry=%s)", record.name, record.entry, entry_point.value)
        return LoadedPlugin(record=record, plugin_cls=plugin_cls, entry_point=entry_point)
