"""Plugin discovery, settings projection and execution"""

from .base import EntryPoint, ExecutionContext, PluginResult
from .executor import EXECUTOR, Executor
from .options import PluginOptionsService
from .registry import REGISTRY, PluginRegistry
from .settings_projector import SettingsProjector

__all__ = [
    "EXECUTOR",
    "EntryPoint",
    "ExecutionContext",
    "Executor",
    "PluginOptionsService",
    "PluginRegistry",
    "PluginResult",
    "REGISTRY",
    "SettingsProjector",
]
