"""Composition root wiring configuration, caches, transport and services.

An :class:`AuthContext` is owned by the host application; nothing in
m2mauth is a process-wide singleton except the metrics collector.

Example:
    >>> with AuthContext.from_env() as context:
    ...     auth_token = context.validator.validate_token(bearer)
    ...     headers = context.acquirer.authorization_headers("bank_account")
"""

from __future__ import annotations

from types import TracebackType
from typing import Optional

import httpx

from m2mauth.auth import KeySet, KeySetCache, TokenAcquirer, TokenValidator
from m2mauth.cache import LocalCache, SharedCache, create_shared_cache
from m2mauth.config import ENV_APPS, Env
from m2mauth.observability import get_logger
from m2mauth.registry import AppRegistry, ProviderRegistry
from m2mauth.transport import Transport

logger = get_logger(__name__)


class AuthContext:
    """Everything needed to validate inbound tokens and acquire outbound ones."""

    def __init__(
        self,
        env: Env,
        providers: ProviderRegistry,
        apps: AppRegistry,
        transport: Transport,
        shared_cache: SharedCache,
        local_cache: Optional[LocalCache[KeySet]] = None,
    ) -> None:
        self.env = env
        self.providers = providers
        self.apps = apps
        self.transport = transport
        self.shared_cache = shared_cache
        self.local_cache: LocalCache[KeySet] = local_cache if local_cache is not None else LocalCache()
        self.key_sets = KeySetCache(transport, shared_cache, self.local_cache)
        self.validator = TokenValidator(providers, self.key_sets)
        self.acquirer = TokenAcquirer(providers, apps, transport, shared_cache)

    @classmethod
    def from_env(
        cls,
        env: Optional[Env] = None,
        transport: Optional[httpx.BaseTransport] = None,
        shared_cache: Optional[SharedCache] = None,
    ) -> "AuthContext":
        """Build a context from configuration.

        Providers come from OAUTH_PROVIDERS (required); apps from OAUTH_APPS
        when it is set.

        Args:
            env: Configuration snapshot (default: the process environment).
            transport: Optional httpx transport for testing.
            shared_cache: Shared cache (default: from M2MAUTH_CACHE_BACKEND).

        Raises:
            ConfigurationMissingError: If OAUTH_PROVIDERS is not set.
        """
        env = env if env is not None else Env()
        providers = ProviderRegistry(env)
        providers.load_from_env()
        apps = AppRegistry(env)
        if env.key(ENV_APPS):
            apps.load_from_env(providers=providers.names())
        shared = shared_cache if shared_cache is not None else create_shared_cache(env)
        logger.info(
            "m2mauth.context.created",
            providers=providers.names(),
            apps=apps.names(),
            shared_cache=type(shared).__name__,
        )
        return cls(env, providers, apps, Transport(transport), shared)

    def clear_cache(self) -> None:
        """Clear both cache tiers (key sets and acquired tokens)."""
        self.key_sets.clear_cache()

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "AuthContext":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()
