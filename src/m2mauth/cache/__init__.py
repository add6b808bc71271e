"""m2mauth cache tiers.

This package provides the two cache tiers behind key set and token reuse:
- SharedCache protocol with InMemorySharedCache and RedisSharedCache
- LocalCache for process-local parsed objects

Factory:
- create_shared_cache() builds a SharedCache from M2MAUTH_CACHE_BACKEND
  (default: memory) with the namespace ``<APP_NAME>:jwt:cache``.
"""

from m2mauth.cache.base import (
    DEFAULT_STALE_WINDOW_SECONDS,
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    SharedCache,
)
from m2mauth.cache.memory import InMemorySharedCache, LocalCache
from m2mauth.cache.redis_store import RedisSharedCache
from m2mauth.config import ENV_CACHE_BACKEND, Env


def cache_namespace(env: Env) -> str:
    return f"{env.app_name()}:jwt:cache"


def create_shared_cache(env: Env) -> SharedCache:
    """Create a SharedCache from configuration.

    Reads M2MAUTH_CACHE_BACKEND ("memory" or "redis"), REDIS_URL and APP_NAME.

    Returns:
        Configured SharedCache instance.

    Raises:
        ValueError: If M2MAUTH_CACHE_BACKEND is not "memory" or "redis".
    """
    backend = env.cache_backend()
    if backend == "memory":
        return InMemorySharedCache()
    if backend == "redis":
        return RedisSharedCache(url=env.redis_url(), namespace=cache_namespace(env))
    raise ValueError(f"Unknown {ENV_CACHE_BACKEND}={backend!r}. Use 'memory' or 'redis'.")


__all__ = [
    "DEFAULT_STALE_WINDOW_SECONDS",
    "DEFAULT_TTL_SECONDS",
    "CacheEntry",
    "InMemorySharedCache",
    "LocalCache",
    "RedisSharedCache",
    "SharedCache",
    "cache_namespace",
    "create_shared_cache",
]
