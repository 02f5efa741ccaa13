"""Async retry helpers with exponential backoff."""

import asyncio
import logging
from functools import wraps
from typing import TypeVar, Callable, Any, Awaitable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.7


def backoff_delay(base_delay: float, retry_index: int) -> float:
    """Delay before retry ``retry_index`` (0-based): base_delay * 2^retry_index."""
    return base_delay * (2 ** retry_index)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] | None = None,
) -> T:
    """
    Await ``operation()`` until it succeeds or ``attempts`` are used up.

    Sleeps base_delay after the first failure, base_delay*2 after the
    second, and so on. No jitter. The last exception is re-raised
    unchanged. Only wrap operations that are safe to repeat.

    Args:
        operation: Zero-argument coroutine factory.
        attempts: Total number of attempts (1 = no retry).
        base_delay: Delay in seconds before the first retry.
        label: Name used in log messages.
        sleep: Awaitable sleep function (injectable for tests).
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    sleep = sleep or asyncio.sleep

    last_exception: Exception | None = None
    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as exc:
            last_exception = exc
            if attempt < attempts - 1:
                delay = backoff_delay(base_delay, attempt)
                logger.warning(
                    f"{label} attempt {attempt + 1}/{attempts} "
                    f"failed: {exc}. Retrying in {delay:.1f}s..."
                )
                await sleep(delay)
            else:
                logger.error(f"{label} failed after {attempts} attempts: {exc}")
    raise last_exception  # type: ignore[misc]


def async_retry(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_base: float = DEFAULT_BASE_DELAY,
) -> Callable:
    """
    Decorator form of :func:`retry_async`.

    Args:
        max_attempts: Total number of attempts (1 = no retry).
        backoff_base: Base delay in seconds for the first retry.
    """
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await retry_async(
                lambda: fn(*args, **kwargs),
                attempts=max_attempts,
                base_delay=backoff_base,
                label=fn.__name__,
            )
        return wrapper
    return decorator
