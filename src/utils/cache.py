"""In-memory response caching to avoid paying twice for identical image requests.

- Results keyed by a SHA-256 hash of provider name + normalized request fields
- TTL-based invalidation via cachetools.TTLCache (expired entries are never returned)
- Expired entries purged on write; least recently used entries evicted when full
"""

import hashlib
import json
import logging
import time
from typing import Any, Callable, Optional

import cachetools

from models.image_generation import ProviderResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
MAX_ENTRIES = 1000


class ResponseCache:
    """Process-wide cache for provider results.

    Shared by every provider owned by a registry. Entries are stored with the time
    they were written and treated as misses once older than ``ttl_seconds``. Expired
    entries are dropped whenever a new result is written.

    Example usage:
        cache = ResponseCache()
        key = cache.make_key("OPENAI", {"prompt": "a red circle", "model": None})

        cached = cache.get(key)
        if cached:
            return cached

        result = await provider_call()
        cache.set(key, result)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = MAX_ENTRIES,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize response cache.

        Args:
            ttl_seconds: Time-to-live for entries (default: 5 minutes)
            max_entries: Live entries kept before least recently used ones are evicted
            enabled: Whether caching is enabled (default: True)
            clock: Time source in seconds, injectable for tests
        """
        self.enabled = enabled
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: cachetools.TTLCache[str, ProviderResult] = cachetools.TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=clock
        )

        # Statistics tracking
        self.hits = 0
        self.misses = 0

        if not enabled:
            logger.info("Response caching is DISABLED")

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def make_key(provider: str, fields: dict[str, Any]) -> str:
        """Build a deterministic cache key.

        Args:
            provider: Provider name
            fields: Request fields (prompt, model, size, seed, ...)

        Returns:
            SHA-256 hash as hex string
        """
        payload = json.dumps(
            {"provider": provider, **fields}, sort_keys=True, default=str
        )
        return compute_content_hash(payload)

    def get(self, key: str) -> Optional[ProviderResult]:
        """Get a cached result if present and not expired."""
        if not self.enabled:
            return None

        result = self._entries.get(key)
        if result is None:
            self.misses += 1
            return None

        self.hits += 1
        logger.debug(f"Cache HIT for {result.provider} (hit rate: {self.hit_rate:.1%})")
        return result

    def set(self, key: str, result: ProviderResult) -> None:
        """Store a result; TTLCache purges expired entries on every write."""
        if not self.enabled:
            return

        self._entries[key] = result

    def cleanup_expired(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed
        """
        expired = self._entries.expire()

        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> int:
        """Clear all entries and reset statistics.

        Returns:
            Number of entries that were cleared
        """
        entry_count = len(self._entries)
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        return entry_count

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return {
            "enabled": self.enabled,
            "total_requests": self.hits + self.misses,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "entry_count": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
        }


def load_cache_from_config(config: dict) -> ResponseCache:
    """Build a cache from configuration.

    Args:
        config: Configuration dictionary from ``load_config()``

    Returns:
        ResponseCache instance (may be disabled based on config)
    """
    return ResponseCache(
        ttl_seconds=config.get("cache_ttl_seconds", DEFAULT_TTL_SECONDS),
        enabled=config.get("cache_enabled", True),
    )


def compute_content_hash(content: str) -> str:
    """Compute SHA-256 hash of string content for cache keying."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
