"""Retry helpers with exponential backoff for async API calls."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


def is_retryable_error(error: BaseException) -> bool:
    """Errors opt in to retries through a truthy ``retryable`` attribute."""
    return bool(getattr(error, "retryable", False))


def backoff_delay(
    attempt: int,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> float:
    """Delay before retrying after the given zero-based attempt.

    1s, 2s, 4s, 8s, then capped at ``max_delay``.
    """
    return min(base_delay * (2**attempt), max_delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds, fails non-retryably, or attempts run out.

    Args:
        operation: Zero-argument coroutine factory
        max_attempts: Total number of calls allowed (>= 1)
        base_delay: Delay after the first failure in seconds
        max_delay: Upper bound for any single delay
        is_retryable: Predicate deciding whether an error is worth retrying
        sleep: Awaitable sleep, injectable for tests
        label: Name used in log messages

    Returns:
        The operation's result

    Raises:
        The first non-retryable error, or the last error once attempts are exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or attempt == max_attempts - 1:
                raise

            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.debug(
                f"Retry attempt {attempt + 1}/{max_attempts} for {label} "
                f"after {delay:.1f}s: {e}"
            )
            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"{label} failed after {max_attempts} attempts")
