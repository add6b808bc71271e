"""m2mauth data models.

Immutable pydantic models for registry entries and tokens:
- Provider: identity provider settings (server side and token source)
- App: downstream application we acquire tokens for (client side)
- AccessToken: outbound access token with acquisition-time expiry
- AuthToken: claim set and header of a validated inbound token
"""

from m2mauth.models.base import M2MBaseModel
from m2mauth.models.entries import DEFAULT_GRANT_TYPE, App, Provider
from m2mauth.models.tokens import AccessToken, AuthToken

__all__ = [
    "DEFAULT_GRANT_TYPE",
    "AccessToken",
    "App",
    "AuthToken",
    "M2MBaseModel",
    "Provider",
]
