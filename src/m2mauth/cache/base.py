"""Cache interfaces and stale-read envelope for m2mauth.

Two tiers back key set and token reuse:

- A *shared* cache (possibly networked, shared across processes) that
  stores string values with a TTL and a stale-read grace window.
- A *local* cache (process-local, no TTL) that stores parsed objects and
  is only cleared explicitly.

Stale-read semantics: an entry written at ``t`` with ttl ``T`` is fresh
until ``t + T``. Inside ``[t + T, t + T + W)`` the first reader re-stamps
the entry as fresh for ``W`` more seconds and recomputes, so concurrent
readers keep receiving the old value instead of all refreshing at once.
After ``t + T + W`` the entry is gone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

# Default TTL for shared cache entries (60 minutes)
DEFAULT_TTL_SECONDS = 3600.0

# Default stale-read grace window (3 seconds)
DEFAULT_STALE_WINDOW_SECONDS = 3.0

Compute = Callable[[], Optional[str]]


@dataclass(frozen=True)
class CacheEntry:
    """Shared cache value with its logical expiry (seconds since epoch)."""

    value: str
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at

    def is_stale(self, now: float, stale_window: float) -> bool:
        """True while inside the grace window that follows expiry."""
        return self.expires_at <= now < self.expires_at + stale_window


@runtime_checkable
class SharedCache(Protocol):
    """Protocol for the shared (cross-process) cache tier.

    Values are strings. ``fetch`` returns the cached value or computes,
    stores and returns a new one; a computed ``None`` is returned but never
    stored.
    """

    def get(self, key: str) -> Optional[str]:
        """Return the fresh value for ``key`` or None."""
        ...

    def fetch(
        self,
        key: str,
        compute: Compute,
        ttl: Optional[float] = None,
        stale_window: Optional[float] = None,
    ) -> Optional[str]:
        """Return the cached value for ``key``, computing it on a miss.

        Args:
            key: Cache key.
            compute: Called on a miss (or by the first reader of a stale entry).
            ttl: Seconds the computed value stays fresh (default: cache default).
            stale_window: Grace window after expiry (default: cache default).

        Returns:
            The cached or computed value.
        """
        ...

    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        """Store ``value`` as fresh for ``ttl`` seconds (default: cache default)."""
        ...

    def delete(self, key: str) -> None:
        ...

    def clear(self) -> None:
        ...
