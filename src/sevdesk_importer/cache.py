"""
Shared TTL cache for contact directory snapshots and contact addresses.

The cache is owned by the hosting application and injected into the
ContactDirectory / AddressCache loaders. Entries are immutable values that
expire by TTL only; there is no explicit invalidation.

Keys are tuples:
- (client_id, "contacts")
- (client_id, "address", contact_id)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Hashable, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60


class CacheBackend(Protocol):
    """Minimal cache interface consumed by the loaders."""

    def get(self, key: Hashable) -> Optional[Any]:
        ...

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        ...


class MemoryTTLCache:
    """In-process TTL cache with single-flight population.

    Reads of populated entries only take the short entry lock. Concurrent
    misses for the same key are collapsed into one loader call by
    get_or_load(); every waiter receives the value the first caller stored.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        # key -> [lock, holders]; removed when the last holder releases
        self._key_locks: dict[Hashable, list] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        """Store a value for ttl seconds (last writer wins).

        Expired entries of other keys are evicted on every write.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
            for k in expired:
                del self._entries[k]
            self._entries[key] = (now + ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for expires_at, _ in self._entries.values() if now < expires_at)

    def _acquire_key_lock(self, key: Hashable) -> threading.Lock:
        with self._lock:
            holder = self._key_locks.get(key)
            if holder is None:
                holder = self._key_locks[key] = [threading.Lock(), 0]
            holder[1] += 1
            return holder[0]

    def _release_key_lock(self, key: Hashable) -> None:
        with self._lock:
            holder = self._key_locks[key]
            holder[1] -= 1
            if holder[1] == 0:
                del self._key_locks[key]

    def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], Any],
        ttl: float = DEFAULT_TTL_SECONDS,
    ) -> tuple[Any, bool]:
        """Return (value, from_cache), calling loader at most once per miss.

        Loader exceptions propagate and leave the entry unpopulated.
        """
        value = self.get(key)
        if value is not None:
            return value, True

        lock = self._acquire_key_lock(key)
        try:
            with lock:
                # Another thread may have populated the key while we waited
                value = self.get(key)
                if value is not None:
                    logger.debug("Cache populated by concurrent load: %s", key)
                    return value, True

                value = loader()
                self.set(key, value, ttl)
                return value, False
        finally:
            self._release_key_lock(key)


def get_or_load(
    cache: CacheBackend,
    key: Hashable,
    loader: Callable[[], Any],
    ttl: float = DEFAULT_TTL_SECONDS,
) -> tuple[Any, bool]:
    """get_or_load() for any CacheBackend.

    Uses the backend's own single-flight implementation when it has one,
    otherwise falls back to a plain read-through (duplicate loads possible).
    """
    if isinstance(cache, MemoryTTLCache):
        return cache.get_or_load(key, loader, ttl)

    value = cache.get(key)
    if value is not None:
        return value, True
    value = loader()
    cache.set(key, value, ttl)
    return value, False


_default_cache: Optional[MemoryTTLCache] = None
_default_cache_lock = threading.Lock()


def get_default_cache() -> MemoryTTLCache:
    """Get the process-wide cache singleton."""
    global _default_cache
    with _default_cache_lock:
        if _default_cache is None:
            _default_cache = MemoryTTLCache()
        return _default_cache


def reset_default_cache() -> None:
    """Reset the process-wide cache (useful for testing)."""
    global _default_cache
    with _default_cache_lock:
        _default_cache = None
