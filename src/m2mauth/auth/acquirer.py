"""Outbound access token acquisition (OAuth2 client credentials).

Tokens are cached in the shared cache under ``oauth2:token:<app>:<provider>``
as serialized :class:`AccessToken` JSON, so every process sharing the cache
reuses one token per (app, provider) pair. A cached token is only reused
while it is still current; failed exchanges are never cached.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, Union

import httpx
from pydantic import ValidationError

from m2mauth.cache import DEFAULT_STALE_WINDOW_SECONDS, DEFAULT_TTL_SECONDS, SharedCache
from m2mauth.errors import TokenRequestMissingFieldError
from m2mauth.models import AccessToken, App, Provider
from m2mauth.models.tokens import utcnow
from m2mauth.observability import get_logger, get_metrics, payload_for_logging
from m2mauth.registry import AppRegistry, ProviderRegistry
from m2mauth.transport import Transport

logger = get_logger(__name__)

TOKEN_CACHE_PREFIX = "oauth2:token"

# Order matters: the first missing field is the one reported.
REQUIRED_REQUEST_FIELDS = ("client_id", "client_secret", "audience", "grant_type")


def token_cache_key(app_name: str, provider_name: str) -> str:
    return f"{TOKEN_CACHE_PREFIX}:{app_name}:{provider_name}"


class TokenAcquirer:
    """Acquire and reuse access tokens for downstream apps from every provider.

    Example:
        >>> acquirer = TokenAcquirer(providers, apps, Transport(), InMemorySharedCache())
        >>> for token in acquirer.get_access_tokens("bank_account"):
        ...     print(token.token_header())
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        apps: AppRegistry,
        transport: Transport,
        shared_cache: SharedCache,
        *,
        clock: Callable[[], datetime] = utcnow,
        ttl: float = DEFAULT_TTL_SECONDS,
        stale_window: float = DEFAULT_STALE_WINDOW_SECONDS,
    ) -> None:
        self._providers = providers
        self._apps = apps
        self._transport = transport
        self._shared = shared_cache
        self._clock = clock
        self._ttl = ttl
        self._stale_window = stale_window

    def _resolve_app(self, app: Union[App, str]) -> Optional[App]:
        if isinstance(app, App):
            return app
        return self._apps.get(app)

    def get_access_tokens(self, app_name: Union[App, str]) -> list[AccessToken]:
        """Return one token per provider that issued one; failures are dropped.

        An unknown app yields an empty list.

        Raises:
            TokenRequestMissingFieldError: If the app/provider pair lacks a
                required request field.
        """
        app = self._resolve_app(app_name)
        if app is None:
            logger.warning("m2mauth.token.unknown_app", app=str(app_name))
            return []

        tokens = []
        for provider in self._providers:
            token = self.get_access_token_for_provider(app, provider)
            if token is not None:
                tokens.append(token)
        return tokens

    def get_access_token_for_provider(self, app: App, provider: Provider) -> Optional[AccessToken]:
        """Return the cached token for (app, provider), exchanging on a miss.

        A cached token that is no longer current is evicted and exchanged
        again once.
        """
        key = token_cache_key(app.name, provider.name)
        token, fresh = self._cached_or_fetch(key, app, provider)
        if token is not None and not fresh and not token.current(self._clock()):
            logger.info("m2mauth.token.expired_in_cache", app=app.name, provider=provider.name)
            self._shared.delete(key)
            token, _ = self._cached_or_fetch(key, app, provider)
        return token

    def _cached_or_fetch(
        self, key: str, app: App, provider: Provider
    ) -> tuple[Optional[AccessToken], bool]:
        """Return the token for ``key`` and whether it was exchanged just now."""
        fetched: list[AccessToken] = []

        def compute() -> Optional[str]:
            token = self.fetch_access_token(app, provider)
            if token is None:
                return None
            fetched.append(token)
            return token.model_dump_json()

        raw = self._shared.fetch(key, compute, ttl=self._ttl, stale_window=self._stale_window)
        if raw is None:
            return None, False
        if fetched:
            token = fetched[0]
            self._shorten_ttl(key, token)
            return token, True
        try:
            return AccessToken.model_validate_json(raw), False
        except ValidationError:
            logger.warning("m2mauth.token.corrupt_cache_entry", key=key)
            self._shared.delete(key)
            return None, False

    def _shorten_ttl(self, key: str, token: AccessToken) -> None:
        # A cached token never outlives its own expires_in.
        if 0 < token.expires_in < self._ttl:
            self._shared.set(key, token.model_dump_json(), ttl=float(token.expires_in))

    def request_body(self, app: App, provider: Provider) -> dict[str, Optional[str]]:
        return {
            "client_id": provider.client_id,
            "client_secret": provider.client_secret,
            "audience": app.audience,
            "grant_type": app.grant_type,
        }

    def fetch_access_token(self, app: App, provider: Provider) -> Optional[AccessToken]:
        """Exchange client credentials for an access token at the provider.

        Returns:
            The token on a 2xx response; None on transport failure, any
            other status, or an unusable response body.

        Raises:
            TokenRequestMissingFieldError: Before any network call, for the
                first missing request field.
        """
        body = self.request_body(app, provider)
        for field in REQUIRED_REQUEST_FIELDS:
            if not body[field]:
                raise TokenRequestMissingFieldError(field, {"app": app.name, "provider": provider.name})
        if not provider.token_url:
            logger.warning("m2mauth.token.no_token_url", app=app.name, provider=provider.name)
            self._record(app, provider, "error")
            return None

        log_body = payload_for_logging(body)
        try:
            response = self._transport.post_json(provider.token_url, body)
        except httpx.HTTPError as exc:
            logger.warning(
                "m2mauth.token.request_failed",
                app=app.name,
                provider=provider.name,
                url=provider.token_url,
                body=log_body,
                error=str(exc),
            )
            self._record(app, provider, "error")
            return None

        if not 200 <= response.status_code < 300:
            logger.warning(
                "m2mauth.token.request_failed",
                app=app.name,
                provider=provider.name,
                url=provider.token_url,
                body=log_body,
                status=response.status_code,
                response=response.text,
            )
            self._record(app, provider, "rejected")
            return None

        try:
            data: Any = response.json()
            token = AccessToken.from_response(data, acquired_at=self._clock())
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning(
                "m2mauth.token.invalid_response",
                app=app.name,
                provider=provider.name,
                status=response.status_code,
                error=str(exc),
            )
            self._record(app, provider, "error")
            return None

        logger.info(
            "m2mauth.token.acquired",
            app=app.name,
            provider=provider.name,
            expires_in=token.expires_in,
        )
        self._record(app, provider, "acquired")
        return token

    def can_get_access_tokens(self, app_name: Union[App, str]) -> bool:
        """True if at least one provider could be asked for a token for the app."""
        app = self._resolve_app(app_name)
        if app is None:
            return False
        for provider in self._providers:
            if not provider.token_url:
                continue
            body = self.request_body(app, provider)
            if all(body[field] for field in REQUIRED_REQUEST_FIELDS):
                return True
        return False

    def authorization_headers(self, app_name: Union[App, str]) -> list[str]:
        """``Authorization`` header values for every current token of the app."""
        now = self._clock()
        headers = []
        for token in self.get_access_tokens(app_name):
            header = token.token_header(now)
            if header is not None:
                headers.append(header)
        return headers

    def _record(self, app: App, provider: Provider, outcome: str) -> None:
        get_metrics().increment_counter(
            "m2mauth_token_requests_total",
            {"app": app.name, "provider": provider.name, "outcome": outcome},
        )
