"""Manifest schema and static contract validation for TRMNL plugins."""

from __future__ import annotations

import importlib
import inspect
import warnings
from typing import Any

import jsonschema

from .runtime import PluginBase

KNOWN_CAPABILITIES: frozenset[str] = frozenset({"http", "oauth", "credentials"})

# Producer methods, in the order the loader looks for them
ENTRY_POINTS: tuple[str, ...] = ("locals", "execute", "__call__")

MANIFEST_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["name", "version", "module"],
    "properties": {
        "name": {"type": "string", "pattern": "^[a-z0-9_]+$"},
        "display_name": {"type": "string"},
        "description": {"type": "string"},
        "version": {"type": "string"},
        "module": {"type": "string", "pattern": r"^[\w.]+:\w+$"},
        "capabilities": {
            "type": "array",
            "items": {"type": "string", "enum": sorted(KNOWN_CAPABILITIES)},
        },
        "required_credentials": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["service", "key"],
                "properties": {"service": {"type": "string"}, "key": {"type": "string"}},
            },
        },
        "oauth_provider": {"type": "string"},
        "oauth_settings_keys": {"type": "array", "items": {"type": "string"}},
        "option_fields": {"type": "object", "additionalProperties": {"type": "string"}},
        "form_fields": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["keyname", "field_type"],
                "properties": {
                    "keyname": {"type": "string"},
                    "field_type": {"type": "string"},
                    "name": {"type": "string"},
                    "options": {"type": "array"},
                },
            },
        },
    },
}


def validate_manifest(manifest: dict) -> None:
    """Raise ``jsonschema.ValidationError`` when the manifest is malformed."""
    jsonschema.validate(instance=manifest, schema=MANIFEST_SCHEMA)


def _defined_by_plugin(plugin_cls: type, name: str) -> bool:
    # Ignore what PluginBase and object provide
    for klass in plugin_cls.__mro__:
        if klass in (PluginBase, object):
            continue
        if name in vars(klass):
            return True
    return False


def find_entry_point(plugin_cls: type) -> str | None:
    """Return the producer method the plugin implements, or ``None``.

    ``locals`` wins over ``execute(settings)``, which wins over a callable
    instance (``__call__(settings)``).
    """
    for name in ENTRY_POINTS:
        if _defined_by_plugin(plugin_cls, name) and callable(getattr(plugin_cls, name, None)):
            return name
    return None


def _discover_manifest(plugin_cls: type) -> dict:
    """Import ``{package}.manifest`` next to the plugin's module and return PLUGIN_MANIFEST."""
    module_parts = plugin_cls.__module__.rsplit(".", 1)
    if len(module_parts) < 2:
        raise AssertionError(
            f"Cannot discover manifest for {plugin_cls!r}: module '{plugin_cls.__module__}' "
            "has no parent package. Pass the manifest explicitly via the `manifest` argument."
        )
    manifest_module_name = f"{module_parts[0]}.manifest"
    try:
        manifest_module = importlib.import_module(manifest_module_name)
    except ImportError as exc:
        raise AssertionError(
            f"Cannot discover manifest for {plugin_cls!r}: failed to import '{manifest_module_name}'."
        ) from exc
    if not hasattr(manifest_module, "PLUGIN_MANIFEST"):
        raise AssertionError(f"'{manifest_module_name}' does not define 'PLUGIN_MANIFEST'.")
    return manifest_module.PLUGIN_MANIFEST  # type: ignore[no-any-return]


def assert_plugin_contract(plugin_cls: type, manifest: dict | None = None) -> None:
    """Validate a plugin class and its manifest against the plugin contract.

    Raises ``AssertionError`` on hard violations and emits ``warnings.warn``
    for soft issues (synchronous producers).
    """
    if manifest is None:
        manifest = _discover_manifest(plugin_cls)

    try:
        validate_manifest(manifest)
    except jsonschema.ValidationError as exc:
        raise AssertionError(f"Manifest is invalid: {exc.message}") from exc

    class_name = manifest["module"].split(":", 1)[1]
    assert class_name == plugin_cls.__name__, (
        f"Manifest 'module' names class '{class_name}' but {plugin_cls.__name__} was given."
    )

    entry_point = find_entry_point(plugin_cls)
    assert entry_point is not None, (
        f"{plugin_cls.__name__} implements none of {ENTRY_POINTS}; a plugin must produce its locals."
    )
    if not inspect.iscoroutinefunction(getattr(plugin_cls, entry_point)):
        warnings.warn(
            f"{plugin_cls.__name__}.{entry_point} is synchronous; it will block the event loop.",
            stacklevel=2,
        )

    for field_name, method_name in (manifest.get("option_fields") or {}).items():
        method = getattr(plugin_cls, method_name, None)
        assert callable(method), (
            f"Option field '{field_name}' points at '{method_name}', which {plugin_cls.__name__} does not define."
        )
