"""m2mauth Error Taxonomy.

This module defines the error hierarchy for bearer token validation and
machine-to-machine token acquisition, providing structured error handling
with specific error codes and context information.
"""
from __future__ import annotations

from typing import Any, Iterable


class M2MAuthError(Exception):
    """Base exception for all m2mauth errors.

    Attributes:
        code: Error code following the m2mauth:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationMissingError(M2MAuthError):
    """Raised when one or more required configuration keys are absent.

    Fatal to the operation that requested the value; never retried.

    Attributes:
        keys: The missing (upper-cased) configuration keys
    """

    def __init__(self, keys: Iterable[str], details: dict[str, Any] | None = None) -> None:
        missing = list(keys)
        if len(missing) == 1:
            message = f"Missing required configuration {missing[0]!r}"
        else:
            message = f"Missing required configuration keys: {missing!r}"
        super().__init__(
            code="m2mauth:config/missing",
            message=message,
            details={"keys": missing, **(details or {})},
        )
        self.keys = missing


class KeyRetrievalError(M2MAuthError):
    """Raised when a provider's JSON Web Key Set cannot be loaded.

    Covers unreachable endpoints, timeouts and any non-200 response.
    Not retried internally.

    Attributes:
        provider: Name of the provider whose keys were requested
        url: The JWKS URL that was requested
        status: HTTP status returned, or None on transport failure
    """

    def __init__(
        self,
        provider: str,
        url: str | None,
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code="m2mauth:keys/retrieval_failed",
            message="Failed to load authorization key set",
            details={"provider": provider, "url": url, "status": status, **(details or {})},
        )
        self.provider = provider
        self.url = url
        self.status = status


class TokenDecodeError(M2MAuthError):
    """Raised when an inbound bearer token cannot be validated.

    Covers malformed structure, bad signature, unknown key id, issuer or
    audience mismatch and expired tokens. The underlying JOSE or key
    retrieval error, when there is one, is chained as ``__cause__``.

    Attributes:
        reason: Short description of why the token was rejected
        provider: Name of the provider that rejected it, if any
    """

    def __init__(
        self,
        reason: str,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = f"Invalid token: {reason}"
        super().__init__(
            code="m2mauth:token/decode_failed",
            message=message,
            details={"reason": reason, "provider": provider, **(details or {})},
        )
        self.reason = reason
        self.provider = provider


class NoProvidersConfiguredError(TokenDecodeError):
    """Raised when a token is validated but no providers are registered."""

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__("no oauth2 providers configured", details=details)
        self.code = "m2mauth:token/no_providers"


class TokenRequestMissingFieldError(M2MAuthError, ValueError):
    """Raised when an outbound token request lacks a required field.

    Raised before any network call is attempted.

    Attributes:
        field: The first missing request field
    """

    def __init__(self, field: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="m2mauth:token/missing_field",
            message=f"missing {field}",
            details={"field": field, **(details or {})},
        )
        self.field = field
