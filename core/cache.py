# core/cache.py

"""
Small in-memory TTL cache.

Holds dashboard snapshots between explicit refreshes. Entries are keyed by
string; keys sharing a prefix ("dashboard:") can be dropped together when a
request changes.
"""

import time
from typing import Any, Callable, Optional
from threading import Lock
from core.logging_config import logger


class CacheEntry:
    """Represents a cached value with expiration time."""

    def __init__(self, value: Any, expires_at: float):
        self.value = value
        self.expires_at = expires_at


class SimpleCache:
    """
    In-memory cache with TTL support.

    Thread-safe for concurrent access. `clock` returns seconds and is
    injectable so expiry can be tested without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._cache: dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        """Cached value, or None if missing or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if self._clock() >= entry.expires_at:
                del self._cache[key]
                return None

            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: int = 30):
        with self._lock:
            self._cache[key] = CacheEntry(value, self._clock() + ttl_seconds)

    def delete(self, key: str):
        with self._lock:
            self._cache.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._cache if k.startswith(prefix)]
            for k in keys:
                del self._cache[k]
        if keys:
            logger.debug(f"Cache invalidated {len(keys)} '{prefix}' entries")
        return len(keys)

    def clear(self):
        with self._lock:
            self._cache.clear()


# Global cache instance
_cache = SimpleCache()


def cache_get(key: str) -> Optional[Any]:
    return _cache.get(key)


def cache_set(key: str, value: Any, ttl_seconds: int = 30):
    _cache.set(key, value, ttl_seconds)


def cache_delete(key: str):
    _cache.delete(key)


def cache_delete_prefix(prefix: str) -> int:
    return _cache.delete_prefix(prefix)


def cache_clear():
    """Clear all cache entries."""
    _cache.clear()
