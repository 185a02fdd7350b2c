"""Retry-with-backoff and timeout primitives for calls to external collaborators."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .config import RetrySettings
from .errors import AuthError, SchemaMismatchError, StageTimeoutError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

# Retrying these cannot succeed until something changes out of band.
NON_RETRYABLE: tuple[type[BaseException], ...] = (SchemaMismatchError, AuthError)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Return the delay before retrying after failed ``attempt`` (1-based)."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


async def with_retry(
    op: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    give_up_on: tuple[type[BaseException], ...] = NON_RETRYABLE,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Await ``op`` until it succeeds or ``max_attempts`` is exhausted.

    The last error is re-raised unchanged. Errors listed in ``give_up_on`` are
    re-raised on the first occurrence.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await op()
        except give_up_on:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            last_error = exc
            if attempt >= max_attempts:
                break
            delay = backoff_delay(attempt, base_delay, max_delay)
            LOGGER.warning(
                "Retrying %s (attempt %s/%s) in %.2fs: %s",
                label,
                attempt,
                max_attempts,
                delay,
                exc,
            )
            await sleep(delay)

    assert last_error is not None
    LOGGER.error("%s failed after %s attempts", label, max_attempts)
    raise last_error


async def retry_with_settings(
    op: Callable[[], Awaitable[T]],
    settings: RetrySettings,
    *,
    label: str,
    give_up_on: tuple[type[BaseException], ...] = NON_RETRYABLE,
) -> T:
    """Shorthand for :func:`with_retry` driven by :class:`RetrySettings`."""
    return await with_retry(
        op,
        max_attempts=settings.max_attempts,
        base_delay=settings.base_delay_seconds,
        max_delay=settings.max_delay_seconds,
        give_up_on=give_up_on,
        label=label,
    )


async def with_timeout(
    op: Callable[[], Awaitable[T]], ceiling: float, *, label: str = "operation"
) -> T:
    """Await ``op`` for at most ``ceiling`` seconds.

    On expiry the awaited task is cancelled and :class:`StageTimeoutError` is
    raised. Resources held by ``op`` are not released here.
    """
    try:
        return await asyncio.wait_for(op(), timeout=ceiling)
    except asyncio.TimeoutError as exc:
        LOGGER.warning("%s exceeded its %.1fs ceiling", label, ceiling)
        raise StageTimeoutError(label, ceiling) from exc


__all__ = [
    "NON_RETRYABLE",
    "backoff_delay",
    "retry_with_settings",
    "with_retry",
    "with_timeout",
]
