# core/cache.py

"""
In-memory TTL cache for scoped list views.

Keys are namespaced per principal (see view_cache_key) so that a scope
change can drop every cached view of that principal at once.
"""

from typing import Optional, Any
from datetime import datetime, timedelta
from threading import Lock
from core.logging_config import logger


class CacheEntry:
    """A cached value with expiration time."""

    def __init__(self, value: Any, ttl_seconds: int):
        self.value = value
        self.expires_at = datetime.now() + timedelta(seconds=ttl_seconds)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now()) >= self.expires_at


class SimpleCache:
    """
    Simple in-memory cache with TTL support.

    Thread-safe: sync routes run in the threadpool.
    """

    def __init__(self):
        self._cache: dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.is_expired():
                del self._cache[key]
                return None

            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: int = 300):
        with self._lock:
            self._cache[key] = CacheEntry(value, ttl_seconds)

    def delete(self, key: str):
        with self._lock:
            self._cache.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns the count removed."""
        with self._lock:
            doomed = [key for key in self._cache if key.startswith(prefix)]
            for key in doomed:
                del self._cache[key]
            return len(doomed)

    def clear(self):
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)


# Global cache instance
_cache = SimpleCache()


def view_cache_key(principal_id: str, view: str, selection: str, *params) -> str:
    """
    scope:<principal>:<view>:<selection>:<params...>
    """
    parts = ["scope", principal_id, view, selection]
    parts.extend(str(p) for p in params)
    return ":".join(parts)


def principal_cache_prefix(principal_id: str, view: Optional[str] = None) -> str:
    if view:
        return f"scope:{principal_id}:{view}:"
    return f"scope:{principal_id}:"


def cache_get(key: str) -> Optional[Any]:
    return _cache.get(key)


def cache_set(key: str, value: Any, ttl_seconds: int = 300):
    _cache.set(key, value, ttl_seconds)


def cache_delete(key: str):
    _cache.delete(key)


def invalidate_principal(principal_id: str, view: Optional[str] = None) -> int:
    """Drop cached views of one principal (optionally a single view)."""
    removed = _cache.delete_prefix(principal_cache_prefix(principal_id, view))
    if removed:
        logger.debug(f"Invalidated {removed} cached views for {principal_id}")
    return removed


def cache_clear():
    """Clear all cache entries."""
    _cache.clear()
