"""Retry/backoff decorator for async plugin functions.

Usage::

    from trmnl_plugin_sdk import RetryConfig, RetryableError, with_retry

    @with_retry(RetryConfig(max_retries=3, base_delay=0.5, strategy="linear"))
    async def load_feed():
        try:
            return await client.get(url)
        except httpx.TransportError as e:
            raise RetryableError(str(e)) from e

The decorator retries on ``RetryableError`` and raises immediately on
``NonRetryableError`` or any other exception type.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable, Literal


class RetryableError(Exception):
    """Raise inside a ``@with_retry``-decorated function to trigger a retry."""


class NonRetryableError(Exception):
    """Raise inside a ``@with_retry``-decorated function to bypass all retries."""


@dataclass
class RetryConfig:
    """Configuration for retry behaviour.

    Attributes:
        max_retries: Number of *additional* attempts after the first failure.
            Total attempts = max_retries + 1.
        base_delay: Sleep duration in seconds before the first retry.
        max_delay: Upper bound on sleep duration.
        backoff_factor: Multiplier applied per retry (exponential strategy only).
        strategy: ``"exponential"`` (base * factor ** attempt) or ``"linear"``
            (base * (attempt + 1)).
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    strategy: Literal["exponential", "linear"] = "exponential"

    def delay_for(self, attempt: int) -> float:
        """Return sleep duration (seconds) before retry number ``attempt`` (0-indexed)."""
        if self.strategy == "linear":
            return min(self.base_delay * (attempt + 1), self.max_delay)
        return min(self.base_delay * (self.backoff_factor ** attempt), self.max_delay)


def with_retry(config: RetryConfig) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator factory that wraps an async function with retry/backoff logic.

    Raises:
        RetryableError: Re-raised after ``config.max_retries`` retries are exhausted.
        NonRetryableError: Raised immediately, bypassing all retries.
    """
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(config.max_retries + 1):
                try:
                    return await fn(*args, **kwargs)
                except NonRetryableError:
                    raise
                except RetryableError:
                    if attempt < config.max_retries:
                        await asyncio.sleep(config.delay_for(attempt))
                    else:
                        raise
        return wrapper
    return decorator
