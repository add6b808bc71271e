"""m2mauth testing utilities.

Modules:
    keys: RSA signing keys with self-signed certificates, JWKS builders
          and RS256 token signing.
    mocks: RecordingHandler for httpx.MockTransport with request counting.
    fixtures: Pytest fixtures (recording_handler, mock_transport,
              signing_key, fake_clock).

Example:
    >>> from m2mauth.testing import SigningKey, build_jwks, RecordingHandler
"""

from m2mauth.testing.keys import SigningKey, build_jwks, make_claims
from m2mauth.testing.mocks import RecordingHandler

__all__ = [
    "RecordingHandler",
    "SigningKey",
    "build_jwks",
    "make_claims",
]
