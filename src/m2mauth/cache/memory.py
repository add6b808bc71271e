"""In-memory cache tiers.

InMemorySharedCache implements the SharedCache protocol for a single
process (tests, development, single-worker deployments). LocalCache is the
process-local tier for parsed objects: no TTL, cleared only explicitly.
Both are thread-safe.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Generic, Optional, TypeVar

from m2mauth.cache.base import (
    DEFAULT_STALE_WINDOW_SECONDS,
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    Compute,
)

T = TypeVar("T")


class InMemorySharedCache:
    """Thread-safe in-memory SharedCache with TTL and stale-read window.

    Example:
        >>> cache = InMemorySharedCache(default_ttl=60.0)
        >>> cache.fetch("oauth2:keys:auth0", lambda: '{"keys": []}')
        '{"keys": []}'
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        stale_window: float = DEFAULT_STALE_WINDOW_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._default_ttl = default_ttl
        self._stale_window = stale_window
        self._clock = clock or time.time

    def get(self, key: str) -> Optional[str]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.is_fresh(now):
                return None
            return entry.value

    def fetch(
        self,
        key: str,
        compute: Compute,
        ttl: Optional[float] = None,
        stale_window: Optional[float] = None,
    ) -> Optional[str]:
        ttl = self._default_ttl if ttl is None else ttl
        window = self._stale_window if stale_window is None else stale_window
        now = self._clock()

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if entry.is_fresh(now):
                    return entry.value
                if window > 0 and entry.is_stale(now, window):
                    # Serve the old value to everyone else while we refresh.
                    self._entries[key] = CacheEntry(entry.value, now + window)
                else:
                    del self._entries[key]

        value = compute()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class LocalCache(Generic[T]):
    """Process-local cache with no expiry, guarded by a lock.

    Entries live until ``clear()``; callers make keys content-addressed
    (e.g. include a checksum) so stale values are never looked up again.
    """

    def __init__(self) -> None:
        self._entries: dict[str, T] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._entries.get(key)

    def fetch(self, key: str, compute: Callable[[], T]) -> T:
        with self._lock:
            if key in self._entries:
                return self._entries[key]
            value = compute()
            self._entries[key] = value
            return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
