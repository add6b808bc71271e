"""JWKS retrieval and two-tier key set caching.

The raw JWKS document is cached in the shared cache under
``oauth2:keys:<provider>`` (60 minute TTL, 3 second stale-read window) so
that processes sharing the cache do not all hit the identity provider at
once. Parsed keys are cached in the process-local cache under
``oauth2:keys:<provider>:<crc32 of the raw document>``: certificate parsing
happens once per process per document, and a changed document (new
checksum) is parsed again even while the shared entry is still fresh.
"""

from __future__ import annotations

import base64
import json
import zlib
from typing import Any, Optional

import httpx
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from joserfc.errors import JoseError
from joserfc.jwk import RSAKey

from m2mauth.cache import (
    DEFAULT_STALE_WINDOW_SECONDS,
    DEFAULT_TTL_SECONDS,
    InMemorySharedCache,
    LocalCache,
    SharedCache,
)
from m2mauth.errors import KeyRetrievalError
from m2mauth.models import Provider
from m2mauth.observability import get_logger, get_metrics
from m2mauth.transport import Transport

logger = get_logger(__name__)

# Parsed key set: key id -> RSA public key
KeySet = dict[str, RSAKey]

KEYS_CACHE_PREFIX = "oauth2:keys"


def keys_cache_key(provider_name: str) -> str:
    return f"{KEYS_CACHE_PREFIX}:{provider_name}"


def local_keys_cache_key(provider_name: str, raw: str) -> str:
    return f"{keys_cache_key(provider_name)}:{jwks_checksum(raw)}"


def jwks_checksum(raw: str) -> int:
    """CRC32 of the raw JWKS document (unsigned, as written in cache keys)."""
    return zlib.crc32(raw.encode("utf-8"))


def _key_from_x5c(certificate: str) -> Optional[RSAKey]:
    cert = x509.load_der_x509_certificate(base64.b64decode(certificate))
    public_key = cert.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        return None
    return RSAKey.import_key(public_key)


def _key_from_entry(entry: dict[str, Any]) -> Optional[RSAKey]:
    x5c = entry.get("x5c")
    if isinstance(x5c, list) and x5c:
        return _key_from_x5c(x5c[0])
    if entry.get("kty") == "RSA" and entry.get("n") and entry.get("e"):
        return RSAKey.import_key({"kty": "RSA", "n": entry["n"], "e": entry["e"]})
    return None


def parse_jwks(raw: str) -> KeySet:
    """Parse a JWKS document into a mapping of key id to public key.

    Each entry's first ``x5c`` certificate (base64 DER) supplies the key;
    entries without ``x5c`` fall back to their RSA ``n``/``e`` parameters.
    Entries without a ``kid``, with non-RSA keys, or with unusable key
    material are skipped.

    Args:
        raw: The JWKS JSON document.

    Returns:
        Dict of kid -> RSAKey (possibly empty).

    Raises:
        ValueError: If the document is not a JSON object.
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("JWKS document must be a JSON object")

    key_set: KeySet = {}
    for entry in data.get("keys") or []:
        if not isinstance(entry, dict):
            continue
        kid = entry.get("kid")
        if not kid:
            logger.warning("m2mauth.jwks.key_skipped", reason="missing kid")
            continue
        try:
            key = _key_from_entry(entry)
        except (ValueError, TypeError, JoseError) as exc:
            logger.warning("m2mauth.jwks.key_skipped", kid=kid, reason=str(exc))
            continue
        if key is None:
            logger.warning("m2mauth.jwks.key_skipped", kid=kid, reason="no usable RSA key")
            continue
        key_set[kid] = key
    return key_set


class KeySetCache:
    """Fetch-through, two-tier cache of provider key sets.

    Example:
        >>> key_sets = KeySetCache(Transport())
        >>> keys = key_sets.get_keys(provider)
        >>> keys["my-kid"]
    """

    def __init__(
        self,
        transport: Transport,
        shared_cache: Optional[SharedCache] = None,
        local_cache: Optional[LocalCache[KeySet]] = None,
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        stale_window: float = DEFAULT_STALE_WINDOW_SECONDS,
    ) -> None:
        self._transport = transport
        self._shared = shared_cache if shared_cache is not None else InMemorySharedCache()
        self._local: LocalCache[KeySet] = local_cache if local_cache is not None else LocalCache()
        self._ttl = ttl
        self._stale_window = stale_window

    @property
    def shared_cache(self) -> SharedCache:
        return self._shared

    @property
    def local_cache(self) -> LocalCache[KeySet]:
        return self._local

    def get_keys(self, provider: Provider) -> KeySet:
        """Return the provider's parsed key set, fetching and parsing on a miss.

        Raises:
            KeyRetrievalError: If the JWKS cannot be loaded.
        """
        remote_key = keys_cache_key(provider.name)
        raw = self._shared.fetch(
            remote_key,
            lambda: self.fetch_remote_key_set(provider),
            ttl=self._ttl,
            stale_window=self._stale_window,
        )
        if raw is None:
            raise KeyRetrievalError(provider.name, provider.jwks_url)
        return self._local.fetch(
            local_keys_cache_key(provider.name, raw),
            lambda: self._parse(provider, raw),
        )

    def _parse(self, provider: Provider, raw: str) -> KeySet:
        key_set = parse_jwks(raw)
        get_metrics().increment_counter("m2mauth_jwks_parse_total", {"provider": provider.name})
        logger.info("m2mauth.jwks.parsed", provider=provider.name, kids=sorted(key_set))
        return key_set

    def fetch_remote_key_set(self, provider: Provider) -> str:
        """GET the provider's JWKS document; only a 200 with a JSON object is accepted.

        Raises:
            KeyRetrievalError: On missing URL, transport failure, non-200 or invalid body.
        """
        metrics = get_metrics()
        labels = {"provider": provider.name}
        if not provider.jwks_url:
            metrics.increment_counter("m2mauth_jwks_fetch_errors_total", labels)
            raise KeyRetrievalError(provider.name, None, details={"reason": "jwks_url not configured"})

        try:
            response = self._transport.get(provider.jwks_url)
        except httpx.HTTPError as exc:
            metrics.increment_counter("m2mauth_jwks_fetch_errors_total", labels)
            logger.warning(
                "m2mauth.jwks.fetch_failed", provider=provider.name, url=provider.jwks_url, error=str(exc)
            )
            raise KeyRetrievalError(
                provider.name, provider.jwks_url, details={"reason": str(exc)}
            ) from exc

        if response.status_code != 200:
            metrics.increment_counter("m2mauth_jwks_fetch_errors_total", labels)
            logger.warning(
                "m2mauth.jwks.fetch_failed",
                provider=provider.name,
                url=provider.jwks_url,
                status=response.status_code,
            )
            raise KeyRetrievalError(provider.name, provider.jwks_url, response.status_code)

        raw = response.text
        try:
            document = json.loads(raw)
        except ValueError as exc:
            metrics.increment_counter("m2mauth_jwks_fetch_errors_total", labels)
            raise KeyRetrievalError(
                provider.name, provider.jwks_url, 200, details={"reason": "invalid JSON"}
            ) from exc
        if not isinstance(document, dict):
            metrics.increment_counter("m2mauth_jwks_fetch_errors_total", labels)
            raise KeyRetrievalError(
                provider.name, provider.jwks_url, 200, details={"reason": "not a JSON object"}
            )

        metrics.increment_counter("m2mauth_jwks_fetch_total", labels)
        logger.info("m2mauth.jwks.fetched", provider=provider.name, url=provider.jwks_url)
        return raw

    def clear_cache(self) -> None:
        """Clear both tiers; the next lookup always goes to the network."""
        self._shared.clear()
        self._local.clear()
