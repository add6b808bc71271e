"""m2mauth: bearer token validation and machine-to-machine token acquisition.

Validate inbound RS256 tokens against one or more OAuth2 identity providers
and acquire client-credentials tokens for downstream apps, with JWKS and
token reuse through a shared cache.
"""

__version__ = "0.1.0"

from m2mauth.auth import KeySetCache, TokenAcquirer, TokenValidator
from m2mauth.config import Env
from m2mauth.context import AuthContext
from m2mauth.errors import (
    ConfigurationMissingError,
    KeyRetrievalError,
    M2MAuthError,
    NoProvidersConfiguredError,
    TokenDecodeError,
    TokenRequestMissingFieldError,
)
from m2mauth.models import AccessToken, App, AuthToken, Provider
from m2mauth.registry import AppRegistry, ProviderRegistry

__all__ = [
    "__version__",
    "AccessToken",
    "App",
    "AppRegistry",
    "AuthContext",
    "AuthToken",
    "ConfigurationMissingError",
    "Env",
    "KeyRetrievalError",
    "KeySetCache",
    "M2MAuthError",
    "NoProvidersConfiguredError",
    "Provider",
    "ProviderRegistry",
    "TokenAcquirer",
    "TokenDecodeError",
    "TokenRequestMissingFieldError",
    "TokenValidator",
]
