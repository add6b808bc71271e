"""Registry entries: identity providers (server side) and downstream apps (client side).

Both are immutable once built. Their settings are read once from an
:class:`~m2mauth.config.Env` using the ``OAUTH2[_<PREFIX>]_<FIELD>`` key
pattern, where the prefix selects which provider's settings apply.

Provider keys (prefix ``auth0``)::

    OAUTH2_AUTH0_TOKEN_URL          OAUTH2_AUTH0_JWT_ISSUER
    OAUTH2_AUTH0_JWKS_URL           OAUTH2_AUTH0_JWT_AUDIENCE
    OAUTH2_AUTH0_USER_INFO_URL      OAUTH2_AUTH0_M2M_CLIENT_ID
    OAUTH2_AUTH0_AUTHORIZE_URL      OAUTH2_AUTH0_M2M_CLIENT_SECRET

App keys (app ``bank_account``, prefix ``auth0``)::

    OAUTH2_AUTH0_BANK_ACCOUNT_AUDIENCE
    OAUTH2_AUTH0_GRANT_TYPE         (default: client_credentials)
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field, field_validator

from m2mauth.config import Env, build_key
from m2mauth.models.base import M2MBaseModel

DEFAULT_GRANT_TYPE = "client_credentials"


def _normalize_name(value: Any) -> str:
    return "" if value is None else str(value).strip().lower()


class _Entry(M2MBaseModel):
    """Shared identity, ordering and display for registry entries."""

    name: str = Field(..., description="Lower-cased entry name; the entry's identity")
    prefix: str = Field(default="", description="Lower-cased configuration key prefix")

    @field_validator("name", "prefix", mode="before")
    @classmethod
    def lowercase_names(cls, value: Any) -> str:
        return _normalize_name(value)

    def matches(self, other_name: Any) -> bool:
        return self.name == _normalize_name(other_name)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, _Entry):
            return NotImplemented
        return repr(self) < repr(other)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"

    __str__ = __repr__


class Provider(_Entry):
    """An identity provider that issues tokens we accept and tokens we use."""

    token_url: Optional[str] = None
    jwks_url: Optional[str] = None
    user_info_url: Optional[str] = None
    authorize_url: Optional[str] = None
    issuer: Optional[str] = None
    audience: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    @classmethod
    def from_env(cls, env: Env, name: str, prefix: Optional[str] = None) -> "Provider":
        prefix = _normalize_name(prefix)

        def lookup(field: str) -> Optional[str]:
            return env.get(build_key(prefix, field))

        return cls(
            name=name,
            prefix=prefix,
            token_url=lookup("token_url"),
            jwks_url=lookup("jwks_url"),
            user_info_url=lookup("user_info_url"),
            authorize_url=lookup("authorize_url"),
            issuer=lookup("jwt_issuer"),
            audience=lookup("jwt_audience"),
            client_id=lookup("m2m_client_id"),
            client_secret=lookup("m2m_client_secret"),
        )


class App(_Entry):
    """A downstream application this process needs access tokens for."""

    audience: Optional[str] = None
    grant_type: str = DEFAULT_GRANT_TYPE

    @classmethod
    def from_env(cls, env: Env, name: str, prefix: Optional[str] = None) -> "App":
        name = _normalize_name(name)
        prefix = _normalize_name(prefix)
        return cls(
            name=name,
            prefix=prefix,
            audience=env.get(build_key(prefix, f"{name}_audience")),
            grant_type=env.get(build_key(prefix, "grant_type"), DEFAULT_GRANT_TYPE)
            or DEFAULT_GRANT_TYPE,
        )
