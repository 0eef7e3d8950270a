"""
Cache management for market data.

Provides in-memory caching with TTL to reduce calls to Yahoo Finance.
Expired entries are evicted lazily, when the key is next read; nothing
sweeps the cache in the background.
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from ..config import settings
from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and the epoch time it was stored at."""
    value: T
    stored_at: float


class TTLCache(Generic[T]):
    """
    In-memory cache with time-to-live (TTL) support.

    Reads never return a value whose age is at or beyond the TTL. Entries are
    replaced wholesale by set() and never partially updated.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        name: str = "default",
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Time-to-live for cache entries. Defaults to config value.
            name: Namespace name, used in log messages.
            clock: Source of the current epoch time in seconds.
        """
        self._cache: Dict[str, CacheEntry[T]] = {}
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        self._clock = clock
        self.name = name

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str, ttl_seconds: Optional[float] = None) -> Optional[T]:
        """
        Get data from cache if not expired.

        Args:
            key: Cache key.
            ttl_seconds: Per-call TTL override.

        Returns:
            Cached data if exists and not expired, None otherwise.
        """
        entry = self._cache.get(key)
        if entry is None:
            return None
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl
        if self._clock() - entry.stored_at < ttl:
            logger.debug(f"Cache hit for {self.name}:{key}")
            return entry.value
        logger.debug(f"Cache expired for {self.name}:{key}")
        del self._cache[key]
        return None

    def set(self, key: str, value: T) -> None:
        """
        Store data in cache.

        Args:
            key: Cache key.
            value: Data to cache.
        """
        self._cache[key] = CacheEntry(value=value, stored_at=self._clock())
        logger.debug(f"Cached data for {self.name}:{key}")

    def delete(self, key: str) -> bool:
        """
        Remove an entry from cache.

        Returns:
            True if entry was removed, False if not found.
        """
        if key in self._cache:
            del self._cache[key]
            logger.debug(f"Deleted cache entry for {self.name}:{key}")
            return True
        return False

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared.
        """
        count = len(self._cache)
        self._cache.clear()
        if count:
            logger.info(f"Cleared {count} {self.name} cache entries")
        return count

    @property
    def size(self) -> int:
        """Return the number of entries held, including expired ones not yet read."""
        return len(self._cache)


class CacheRegistry:
    """Independent cache namespaces sharing one clock."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._namespaces: Dict[str, TTLCache[Any]] = {}

    def namespace(self, name: str, ttl_seconds: Optional[float] = None) -> TTLCache[Any]:
        """Get or create the cache for a namespace."""
        cache = self._namespaces.get(name)
        if cache is None:
            cache = TTLCache(ttl_seconds=ttl_seconds, name=name, clock=self._clock)
            self._namespaces[name] = cache
        return cache

    @property
    def names(self):
        return list(self._namespaces)

    def clear(self) -> int:
        """Wipe every namespace. Returns the total number of entries dropped."""
        total = sum(cache.clear() for cache in self._namespaces.values())
        logger.info(f"Cleared {total} cache entries across {len(self._namespaces)} namespaces")
        return total


def symbols_key(prefix: str, symbols) -> str:
    """Order-independent cache key for a symbol set."""
    return f"{prefix}:{','.join(sorted(set(symbols)))}"
