"""
utils/retry.py — Exponential-backoff retry for panel downloads.

Zillow's CDN occasionally drops connections or answers 429/5xx on the large
ZIP-level files. Those are worth retrying; a 404 (renamed file) is not.

Usage:
    from housedata_pipeline.utils.retry import with_retry

    @with_retry(max_attempts=3, base_delay=2.0)
    async def download(url: str) -> bytes:
        ...
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])

RETRYABLE_STATUS = frozenset({408, 425, 429, 500, 502, 503, 504})


def is_transient(exc: BaseException) -> bool:
    """True for connection-level failures and retryable HTTP statuses."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return False


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_if: Callable[[BaseException], bool] = is_transient,
) -> Callable[[F], F]:
    """
    Retry an async function with exponential backoff.

    Delays grow as base_delay * 2^(attempt-1), capped at max_delay. The last
    exception is re-raised unchanged once attempts run out or retry_if
    rejects it.

    Args:
        max_attempts: Total attempts before giving up.
        base_delay:   First delay in seconds.
        max_delay:    Delay cap in seconds.
        retry_if:     Predicate deciding whether an exception is retried.
    """

    def decorator(fn: F) -> F:
        def _before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            log.warning(
                "retry_attempt",
                function=fn.__qualname__,
                attempt=state.attempt_number,
                max_attempts=max_attempts,
                delay_s=round(state.next_action.sleep, 2) if state.next_action else None,
                error=str(exc),
            )

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=base_delay, max=max_delay),
                retry=retry_if_exception(retry_if),
                before_sleep=_before_sleep,
                reraise=True,
            )
            try:
                return await retrying(fn, *args, **kwargs)
            except Exception as exc:
                log.error(
                    "call_failed",
                    function=fn.__qualname__,
                    attempts=retrying.statistics.get("attempt_number"),
                    error=str(exc),
                )
                raise

        return wrapper  # type: ignore[return-value]

    return decorator
