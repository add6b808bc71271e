"""Token validation and acquisition.

- KeySetCache: JWKS retrieval with shared/local caching
- TokenValidator: inbound RS256 token validation with provider fallback
- TokenAcquirer: outbound client-credentials token acquisition and reuse
"""

from m2mauth.auth.acquirer import TokenAcquirer, token_cache_key
from m2mauth.auth.keyset import KeySet, KeySetCache, jwks_checksum, keys_cache_key, parse_jwks
from m2mauth.auth.validator import TokenValidator, decode_header

__all__ = [
    "KeySet",
    "KeySetCache",
    "TokenAcquirer",
    "TokenValidator",
    "decode_header",
    "jwks_checksum",
    "keys_cache_key",
    "parse_jwks",
    "token_cache_key",
]
