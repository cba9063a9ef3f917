"""Shared plugin utilities: result logging helpers."""

from __future__ import annotations

import logging
from typing import Any

from .base import PluginResult


def log_plugin_result(
    result: PluginResult,
    *,
    plugin_name: str,
    user_id: Any = None,
    elapsed_ms: float | None = None,
    _logger: logging.Logger | None = None,
) -> None:
    """Log one line per execution: INFO on success, WARNING on failure."""
    logger = _logger or logging.getLogger(__name__)
    extra: dict[str, Any] = {"plugin": plugin_name}
    if user_id is not None:
        extra["user_id"] = str(user_id)
    if elapsed_ms is not None:
        extra["elapsed_ms"] = round(elapsed_ms, 1)

    if result.success:
        keys = sorted((result.data or {}).keys())
        logger.info("plugin.executed | plugin=%s keys=%s", plugin_name, ",".join(keys), extra=extra)
        # Plugins may report a soft error alongside their data (e.g. an invalid feed URL)
        soft_error = (result.data or {}).get("error")
        if soft_error:
            logger.warning("plugin.soft_error | plugin=%s error=%s", plugin_name, soft_error, extra=extra)
        return

    extra["error_code"] = result.error_code
    extra["status_code"] = result.status_code
    logger.warning("plugin.failed | plugin=%s error=%s", plugin_name, result.error, extra=extra)
