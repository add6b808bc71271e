"""Configuration lookup for m2mauth.

Configuration is a string-keyed mapping (normally the process environment)
resolved once at startup into an :class:`Env` and passed into the
constructors that need it. Keys are case-insensitive; every lookup is
performed on the upper-cased key.

Provider and app settings follow the ``OAUTH2[_<PREFIX>]_<FIELD>`` pattern,
e.g. ``OAUTH2_AUTH0_JWKS_URL`` or ``OAUTH2_JWT_ISSUER`` when the prefix is
empty.

Environment Variables:
    OAUTH_PROVIDERS: Comma-separated provider names (required by the validator)
    OAUTH_APPS: Comma-separated downstream app names
    APP_NAME: Application name used in the shared cache namespace
    REDIS_URL: Redis URL for the shared cache (redis backend only)
    M2MAUTH_CACHE_BACKEND: "memory" (default) or "redis"

Example:
    >>> env = Env({"OAUTH_PROVIDERS": "auth0, okta"})
    >>> env.get_list("oauth_providers")
    ['auth0', 'okta']
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from m2mauth.errors import ConfigurationMissingError

OAUTH2_KEY_ROOT = "oauth2"

ENV_PROVIDERS = "OAUTH_PROVIDERS"
ENV_APPS = "OAUTH_APPS"
ENV_APP_NAME = "APP_NAME"
ENV_REDIS_URL = "REDIS_URL"
ENV_CACHE_BACKEND = "M2MAUTH_CACHE_BACKEND"

DEFAULT_APP_NAME = "app"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_CACHE_BACKEND = "memory"


def build_key(prefix: Optional[str], field: str) -> str:
    """Build an ``oauth2[_<prefix>]_<field>`` key (prefix omitted when empty)."""
    parts = [OAUTH2_KEY_ROOT, prefix or None, field]
    return "_".join(str(part) for part in parts if part)


class Env:
    """Immutable snapshot of string configuration with typed accessors."""

    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        source = os.environ if values is None else values
        self._values: dict[str, str] = {str(k).upper(): str(v) for k, v in source.items()}

    @staticmethod
    def _conv_key(name: str) -> str:
        return str(name).upper()

    def key(self, name: str) -> bool:
        return self._conv_key(name) in self._values

    __contains__ = key

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(self._conv_key(name), default)

    def get_required(self, name: str) -> str:
        if not self.key(name):
            raise ConfigurationMissingError([self._conv_key(name)])
        return self._values[self._conv_key(name)]

    def get_list(
        self, name: str, default: Optional[list[str]] = None
    ) -> Optional[list[str]]:
        """Comma-split value with blank items dropped; ``default`` when absent."""
        if not self.key(name):
            return default
        raw = self._values[self._conv_key(name)]
        return [item.strip() for item in raw.split(",") if item.strip()]

    def get_list_required(self, name: str) -> list[str]:
        if not self.key(name):
            raise ConfigurationMissingError([self._conv_key(name)])
        return self.get_list(name) or []

    def is_enabled(self, name: str, default: bool = False) -> bool:
        if not self.key(name):
            return default
        return self._values[self._conv_key(name)].strip().lower() == "true"

    def is_disabled(self, name: str, default: bool = False) -> bool:
        if not self.key(name):
            return default
        return self._values[self._conv_key(name)].strip().lower() == "false"

    def get_int(self, name: str, default: Optional[int] = None) -> Optional[int]:
        if not self.key(name):
            return default
        return int(self._values[self._conv_key(name)].strip())

    def get_float(self, name: str, default: Optional[float] = None) -> Optional[float]:
        if not self.key(name):
            return default
        return float(self._values[self._conv_key(name)].strip())

    def check_present(self, *names: str) -> bool:
        """Return True when every key is set; otherwise raise listing all missing."""
        missing = [self._conv_key(name) for name in names if not self.key(name)]
        if missing:
            raise ConfigurationMissingError(missing)
        return True

    def app_name(self) -> str:
        return self.get(ENV_APP_NAME, DEFAULT_APP_NAME) or DEFAULT_APP_NAME

    def redis_url(self) -> str:
        return self.get(ENV_REDIS_URL, DEFAULT_REDIS_URL) or DEFAULT_REDIS_URL

    def cache_backend(self) -> str:
        value = self.get(ENV_CACHE_BACKEND, DEFAULT_CACHE_BACKEND) or DEFAULT_CACHE_BACKEND
        return value.strip().lower()

    def __repr__(self) -> str:
        return f"<Env keys={len(self._values)}>"
