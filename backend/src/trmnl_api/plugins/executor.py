"""
Plugin executor: resolves a plugin, projects its settings, runs its producer
under a timeout and a host-import guard, and always returns a PluginResult.
"""
from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
import sys
import threading
import time
from collections.abc import Callable, Mapping
from importlib.abc import MetaPathFinder
from typing import Any

from pydantic import TypeAdapter
from trmnl_plugin_sdk.runtime import PluginBase

from ..core.config import get_settings_instance, resolve_credential
from ..core.exceptions import PluginContractError, PluginExecutionError, TrmnlException
from ..core.http_client import HTTPClientManager, get_http_client_manager
from .base import EntryPoint, ExecutionContext, PluginResult
from .registry import REGISTRY, PluginRegistry
from .settings_projector import SettingsProjector
from .utils import log_plugin_result

logger = logging.getLogger(__name__)

_PAYLOAD_ADAPTER = TypeAdapter(dict[str, Any])


class _DenyImportsFinder(MetaPathFinder):
    # Plugins must not reach host internals at runtime.
    deny = {"trmnl_api"}

    def find_spec(self, fullname, path, target=None):  # type: ignore[override]
        name = str(fullname)
        for p in self.deny:
            if name == p or name.startswith(p + "."):
                raise ImportError(f"Import of '{fullname}' is denied by host policy.")
        return None


class _DenyHostImportsCtx:
    """Install the deny-imports finder and an ``importlib.import_module`` guard.

    Nested and concurrent executions share one installation: the first entry
    installs it, the last exit removes it.
    """

    _lock = threading.Lock()
    _depth = 0
    _finder: _DenyImportsFinder | None = None
    _orig_import_module: Callable[..., Any] | None = None

    @staticmethod
    def _is_denied(name: str) -> bool:
        n = str(name)
        return any(n == p or n.startswith(p + ".") for p in _DenyImportsFinder.deny)

    def __enter__(self) -> _DenyHostImportsCtx:
        cls = type(self)
        with cls._lock:
            if cls._depth == 0:
                cls._finder = _DenyImportsFinder()
                sys.meta_path.insert(0, cls._finder)
                orig_import = importlib.import_module
                cls._orig_import_module = orig_import

                def _guard(name, package=None):  # type: ignore[no-untyped-def]
                    if cls._is_denied(name):
                        raise ImportError(f"Import of '{name}' is denied by host policy.")
                    return orig_import(name, package)

                importlib.import_module = _guard  # type: ignore[assignment]
            cls._depth += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        cls = type(self)
        with cls._lock:
            cls._depth -= 1
            if cls._depth == 0:
                if cls._orig_import_module is not None:
                    importlib.import_module = cls._orig_import_module  # type: ignore[assignment]
                if cls._finder is not None and cls._finder in sys.meta_path:
                    sys.meta_path.remove(cls._finder)
                cls._finder = None
                cls._orig_import_module = None
        return False


class Executor:
    def __init__(
        self,
        registry: PluginRegistry | None = None,
        projector: SettingsProjector | None = None,
        http_client_manager: HTTPClientManager | None = None,
        credential_resolver: Callable[[str, str], str | None] = resolve_credential,
        timeout: float | None = None,
    ):
        self._registry = registry or REGISTRY
        self._projector = projector or SettingsProjector()
        self._http = http_client_manager or get_http_client_manager()
        self._credential_resolver = credential_resolver
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        if self._timeout is not None:
            return self._timeout
        return get_settings_instance().plugin_execution_timeout

    async def execute(
        self,
        plugin_identifier: str,
        settings: Mapping[str, Any] | None,
        context: ExecutionContext | Mapping[str, Any] | None,
    ) -> PluginResult:
        """Run one plugin and report the outcome; never raises."""
        started = time.perf_counter()
        try:
            if not isinstance(context, ExecutionContext):
                context = ExecutionContext.from_trmnl_data(context)
            data = await self._run(plugin_identifier, dict(settings or {}), context)
        except TrmnlException as e:
            result = PluginResult.failure(e)
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected failure executing plugin '%s'", plugin_identifier)
            result = PluginResult.failure(PluginExecutionError(plugin_identifier, str(e), status_code=500))
        else:
            result = PluginResult.ok(data)

        user_id = context.user.id if isinstance(context, ExecutionContext) else None
        log_plugin_result(
            result,
            plugin_name=plugin_identifier,
            user_id=user_id,
            elapsed_ms=(time.perf_counter() - started) * 1000,
            _logger=logger,
        )
        return result

    async def _run(self, plugin_identifier: str, settings: dict[str, Any], context: ExecutionContext) -> dict[str, Any]:
        loaded = self._registry.resolve(plugin_identifier)
        projected = await self._projector.project(
            plugin_identifier,
            settings,
            context,
            oauth_settings_keys=loaded.record.oauth_settings_keys,
        )
        instance = await self._instantiate(loaded.plugin_cls, loaded.record.manifest, projected, context)
        timeout = self.timeout
        try:
            with _DenyHostImportsCtx():
                raw = await asyncio.wait_for(self._invoke(instance, loaded.entry_point, projected), timeout)
        except asyncio.TimeoutError as e:
            raise PluginExecutionError(plugin_identifier, f"timed out after {timeout}s", status_code=504) from e
        except TrmnlException:
            raise
        except Exception as e:
            logger.exception("Plugin '%s' failed: %s", plugin_identifier, e)
            raise PluginExecutionError(plugin_identifier, str(e) or type(e).__name__) from e
        finally:
            await self._teardown(instance)
        return self._to_payload(plugin_identifier, raw)

    async def _instantiate(
        self,
        plugin_cls: type,
        manifest: dict[str, Any],
        settings: dict[str, Any],
        context: ExecutionContext,
    ) -> Any:
        trmnl_data = context.to_trmnl_data()
        if issubclass(plugin_cls, PluginBase):
            return plugin_cls(
                settings,
                trmnl_data,
                manifest=manifest,
                http_client=await self._http.get_client(),
                credentials=self._credential_resolver,
            )
        return plugin_cls(settings, trmnl_data)

    @staticmethod
    async def _invoke(instance: Any, entry_point: EntryPoint, settings: dict[str, Any]) -> Any:
        if entry_point is EntryPoint.LOCALS:
            produced = instance.locals()
        elif entry_point is EntryPoint.EXECUTE:
            produced = instance.execute(settings)
        else:
            produced = instance(settings)
        if inspect.isawaitable(produced):
            produced = await produced
        return produced

    @staticmethod
    async def _teardown(instance: Any) -> None:
        # Drop per-invocation state so nothing leaks into later requests
        close = getattr(instance, "close", None)
        if callable(close):
            try:
                closed = close()
                if inspect.isawaitable(closed):
                    await closed
            except Exception:  # noqa: BLE001
                logger.warning("Plugin close() failed for %s", type(instance).__name__, exc_info=True)
        state = getattr(instance, "__dict__", None)
        if isinstance(state, dict):
            state.clear()

    @staticmethod
    def _to_payload(plugin_identifier: str, raw: Any) -> dict[str, Any]:
        if not isinstance(raw, Mapping):
            raise PluginContractError(plugin_identifier, f"producer returned {type(raw).__name__}, expected a mapping")
        bad_keys = [k for k in raw if not isinstance(k, str)]
        if bad_keys:
            raise PluginContractError(plugin_identifier, f"producer returned non-string keys: {bad_keys!r}")
        try:
            return _PAYLOAD_ADAPTER.dump_python(dict(raw), mode="json")
        except ValueError as e:
            raise PluginContractError(plugin_identifier, f"producer returned non-serializable data: {e}") from e


EXECUTOR = Executor()
