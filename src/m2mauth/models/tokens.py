"""Token models: outbound access tokens and validated inbound tokens."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from pydantic import Field

from m2mauth.models.base import M2MBaseModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessToken(M2MBaseModel):
    """OAuth2 access token acquired through a client-credentials exchange.

    ``expiration_time`` is stamped once, when the token is acquired, to
    ``acquired_at + expires_in``. A token without an expiration time is
    always considered current.

    Attributes:
        access_token: The bearer token string.
        expires_in: Lifetime in seconds as reported by the provider.
        token_type: Token type, typically "Bearer".
        scope: Optional space-separated granted scopes.
        expiration_time: When the token stops being current (UTC).
    """

    access_token: str = Field(..., description="The bearer token string")
    expires_in: int = Field(default=0, description="Lifetime in seconds")
    token_type: str = Field(default="Bearer", description="Token type for Authorization header")
    scope: Optional[str] = Field(default=None, description="Granted scopes")
    expiration_time: Optional[datetime] = Field(
        default=None, description="When the token expires (UTC)"
    )

    @classmethod
    def from_response(
        cls, data: Mapping[str, Any], acquired_at: Optional[datetime] = None
    ) -> "AccessToken":
        """Build a token from a token endpoint response body.

        Args:
            data: Parsed JSON body (access_token, expires_in, token_type, scope?).
            acquired_at: Acquisition time; defaults to now (UTC).

        Returns:
            AccessToken with expiration_time set to acquired_at + expires_in.
        """
        acquired_at = acquired_at or utcnow()
        expires_in = int(data.get("expires_in") or 0)
        return cls(
            access_token=data["access_token"],
            expires_in=expires_in,
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
            expiration_time=acquired_at + timedelta(seconds=expires_in),
        )

    def current(self, now: Optional[datetime] = None) -> bool:
        if self.expiration_time is None:
            return True
        return (now or utcnow()) < self.expiration_time

    def token_header(self, now: Optional[datetime] = None) -> Optional[str]:
        """``Authorization`` header value, or None once the token has expired."""
        if not self.current(now):
            return None
        return f"{self.token_type} {self.access_token}"


class AuthToken(M2MBaseModel):
    """Claim set and header of a successfully validated bearer token."""

    payload: dict[str, Any] = Field(..., description="Decoded JWT claims")
    header: dict[str, Any] = Field(..., description="Decoded JOSE header")
    provider: Optional[str] = Field(default=None, description="Provider that accepted the token")

    def get(self, claim: str, default: Any = None) -> Any:
        return self.payload.get(claim, default)

    @property
    def subject(self) -> Optional[str]:
        return self.payload.get("sub")

    def to_list(self) -> list[dict[str, Any]]:
        return [dict(self.payload), dict(self.header)]

    def to_json(self) -> str:
        return json.dumps(self.to_list())
