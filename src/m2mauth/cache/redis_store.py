"""Redis-backed shared cache.

Entries are stored as JSON envelopes ``{"value": ..., "expires_at": ...}``
under ``<namespace>:<key>``. Redis retention is ``ttl + stale_window`` so the
stale-read window survives logical expiry; the envelope's ``expires_at``
decides freshness. ``clear()`` only removes keys inside the namespace, so
several applications can share one Redis database.
"""

from __future__ import annotations

import json
import time
from typing import Callable, Optional

import redis

from m2mauth.cache.base import (
    DEFAULT_STALE_WINDOW_SECONDS,
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    Compute,
)
from m2mauth.observability import get_logger

logger = get_logger(__name__)

# Socket timeouts for Redis round-trips, aligned with outbound HTTP timeouts
REDIS_SOCKET_TIMEOUT_SECONDS = 2.0

_CLEAR_BATCH_SIZE = 500


class RedisSharedCache:
    """SharedCache stored in Redis, safe for use from many processes.

    Example:
        >>> cache = RedisSharedCache(url="redis://localhost:6379/0", namespace="billing:jwt:cache")
        >>> cache.fetch("oauth2:keys:auth0", lambda: fetch_jwks_body())
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        *,
        url: Optional[str] = None,
        namespace: str = "app:jwt:cache",
        default_ttl: float = DEFAULT_TTL_SECONDS,
        stale_window: float = DEFAULT_STALE_WINDOW_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """Initialize the cache.

        Args:
            client: Existing Redis client (takes precedence over url).
            url: Redis URL used to build a client when none is given.
            namespace: Prefix for every key written by this cache.
            default_ttl: Seconds a value stays fresh.
            stale_window: Grace window after expiry, in seconds.
            clock: Time source (seconds since epoch) for tests.
        """
        if client is None:
            if url is None:
                raise ValueError("RedisSharedCache requires a client or a url")
            client = redis.Redis.from_url(
                url,
                decode_responses=True,
                socket_timeout=REDIS_SOCKET_TIMEOUT_SECONDS,
                socket_connect_timeout=REDIS_SOCKET_TIMEOUT_SECONDS,
            )
        self._client = client
        self._namespace = namespace
        self._default_ttl = default_ttl
        self._stale_window = stale_window
        self._clock = clock or time.time

    @property
    def namespace(self) -> str:
        return self._namespace

    def _full_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _read(self, key: str) -> Optional[CacheEntry]:
        raw = self._client.get(self._full_key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            data = json.loads(raw)
            return CacheEntry(value=data["value"], expires_at=float(data["expires_at"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("m2mauth.cache.corrupt_entry", key=key)
            return None

    def _write(self, key: str, entry: CacheEntry, retention: float) -> None:
        payload = json.dumps({"value": entry.value, "expires_at": entry.expires_at})
        retention_ms = int(retention * 1000)
        if retention_ms <= 0:
            return
        self._client.set(self._full_key(key), payload, px=retention_ms)

    def get(self, key: str) -> Optional[str]:
        entry = self._read(key)
        if entry is None or not entry.is_fresh(self._clock()):
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

        entry = self._read(key)
        if entry is not None:
            if entry.is_fresh(now):
                return entry.value
            if window > 0 and entry.is_stale(now, window):
                self._write(key, CacheEntry(entry.value, now + window), window * 2)
                logger.debug("m2mauth.cache.stale_refresh", key=key)

        value = compute()
        if value is not None:
            self._write(key, CacheEntry(value, self._clock() + ttl), ttl + window)
        return value

    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        self._write(key, CacheEntry(value, self._clock() + ttl), ttl + self._stale_window)

    def delete(self, key: str) -> None:
        self._client.delete(self._full_key(key))

    def clear(self) -> None:
        batch: list[str] = []
        for full_key in self._client.scan_iter(match=f"{self._namespace}:*"):
            batch.append(full_key)
            if len(batch) >= _CLEAR_BATCH_SIZE:
                self._client.delete(*batch)
                batch = []
        if batch:
            self._client.delete(*batch)

    def close(self) -> None:
        self._client.close()
