"""Per-provider request rate limiting over a fixed window."""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 10
DEFAULT_WINDOW_SECONDS = 60.0


class RateLimitExceeded(Exception):
    """Raised when a key has used up its requests for the current window."""

    def __init__(self, key: str, retry_after: int):
        super().__init__(
            f"Rate limit exceeded for {key}. Please wait {retry_after} seconds."
        )
        self.key = key
        self.retry_after = retry_after


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Counts requests per key and rejects once ``max_requests`` is reached.

    A window opens on the first request for a key and lasts ``window_seconds``;
    the next request after it elapses starts a fresh window.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def acquire(self, key: str) -> None:
        """Record one request for ``key``.

        Raises:
            RateLimitExceeded: If the window is already full
        """
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now >= window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return

        if window.count >= self.max_requests:
            retry_after = max(1, math.ceil(window.reset_at - now))
            logger.warning(f"Rate limit hit for {key}, retry in {retry_after}s")
            raise RateLimitExceeded(key, retry_after)

        window.count += 1

    def remaining(self, key: str) -> int:
        """Requests still allowed for ``key`` in the current window."""
        window = self._windows.get(key)
        if window is None or self._clock() >= window.reset_at:
            return self.max_requests
        return max(0, self.max_requests - window.count)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget counters for one key, or all keys."""
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)
