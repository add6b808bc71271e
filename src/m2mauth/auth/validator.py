"""Inbound bearer token validation against the registered providers.

A token is tried against each provider in registration order and accepted
by the first one whose key set, issuer and audience all check out. Only
RS256 signatures are accepted; ``iss`` and ``aud`` must be present and match
the provider's configuration exactly.
"""

from __future__ import annotations

from typing import Any

from joserfc import jwt as jose_jwt
from joserfc.errors import JoseError
from joserfc.jws import extract_compact

from m2mauth.auth.keyset import KeySetCache
from m2mauth.errors import KeyRetrievalError, NoProvidersConfiguredError, TokenDecodeError
from m2mauth.models import AuthToken, Provider
from m2mauth.observability import get_logger, get_metrics
from m2mauth.registry import ProviderRegistry

logger = get_logger(__name__)

ALLOWED_ALGORITHMS = ["RS256"]


def decode_header(token: Any) -> dict[str, Any]:
    """Structurally parse a compact JWS and return its JOSE header.

    Performs no signature check and no I/O.

    Raises:
        TokenDecodeError: If the token is not a three-segment compact JWS
            with a JSON header.
    """
    if not isinstance(token, str) or not token:
        raise TokenDecodeError("token must be a non-empty string")
    try:
        compact = extract_compact(token.encode("utf-8"))
    except JoseError as exc:
        raise TokenDecodeError(exc.description or exc.error) from exc
    except ValueError as exc:
        raise TokenDecodeError(str(exc)) from exc
    return dict(compact.headers())


class TokenValidator:
    """Validate inbound tokens with multi-provider fallback.

    Example:
        >>> validator = TokenValidator(providers, key_sets)
        >>> auth_token = validator.validate_token(bearer)
        >>> auth_token.subject
    """

    def __init__(self, providers: ProviderRegistry, key_sets: KeySetCache) -> None:
        self._providers = providers
        self._key_sets = key_sets

    @property
    def providers(self) -> ProviderRegistry:
        return self._providers

    def validate_token(self, token: str) -> AuthToken:
        """Validate ``token`` against every provider until one accepts it.

        Malformed tokens are rejected before any key set is loaded.

        Raises:
            NoProvidersConfiguredError: If no providers are registered.
            TokenDecodeError: The last provider's failure when all reject it.
        """
        providers = list(self._providers)
        if not providers:
            raise NoProvidersConfiguredError()

        decode_header(token)

        failures: list[TokenDecodeError] = []
        for provider in providers:
            try:
                return self.validate_token_with_provider(token, provider)
            except TokenDecodeError as exc:
                logger.debug(
                    "m2mauth.token.provider_rejected", provider=provider.name, reason=exc.reason
                )
                failures.append(exc)

        last_error = failures[-1]
        logger.info("m2mauth.token.rejected", providers=[p.name for p in providers], reason=last_error.reason)
        raise last_error

    def validate_token_with_provider(self, token: str, provider: Provider) -> AuthToken:
        """Validate ``token`` against a single provider.

        Raises:
            TokenDecodeError: On any failure, chained to the underlying error.
        """
        try:
            auth_token = self._validate(token, provider)
        except TokenDecodeError:
            self._record(provider, "rejected")
            raise
        self._record(provider, "accepted")
        return auth_token

    def _validate(self, token: str, provider: Provider) -> AuthToken:
        if not provider.issuer or not provider.audience:
            raise TokenDecodeError("provider has no issuer or audience configured", provider.name)

        header = decode_header(token)
        kid = header.get("kid")

        try:
            key_set = self._key_sets.get_keys(provider)
        except KeyRetrievalError as exc:
            raise TokenDecodeError(exc.message, provider.name) from exc

        key = key_set.get(kid) if isinstance(kid, str) else None
        if key is None:
            raise TokenDecodeError(f"no key matching kid {kid!r}", provider.name)

        try:
            decoded = jose_jwt.decode(token, key, algorithms=ALLOWED_ALGORITHMS)
            claims_registry = jose_jwt.JWTClaimsRegistry(
                iss={"essential": True, "value": provider.issuer},
                aud={"essential": True, "value": provider.audience},
            )
            claims_registry.validate(decoded.claims)
        except JoseError as exc:
            raise TokenDecodeError(exc.description or exc.error, provider.name) from exc
        except ValueError as exc:
            raise TokenDecodeError(str(exc), provider.name) from exc

        return AuthToken(payload=dict(decoded.claims), header=dict(decoded.header), provider=provider.name)

    def _record(self, provider: Provider, outcome: str) -> None:
        get_metrics().increment_counter(
            "m2mauth_token_validations_total", {"provider": provider.name, "outcome": outcome}
        )
