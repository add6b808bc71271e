"""Tests for AuthContext wiring."""

from typing import Iterator
from unittest.mock import patch

import httpx
import pytest

from m2mauth.cache import InMemorySharedCache
from m2mauth.context import AuthContext
from m2mauth.errors import ConfigurationMissingError
from m2mauth.testing import RecordingHandler, SigningKey
from tests.factories import (
    ISSUER_A,
    JWKS_URL_A,
    TOKEN_URL_A,
    TOKEN_URL_B,
    build_env,
    claims_for,
    serve_jwks,
    token_response,
)


@pytest.fixture
def context(recording_handler: RecordingHandler) -> Iterator[AuthContext]:
    context = AuthContext.from_env(
        build_env(), transport=httpx.MockTransport(recording_handler), shared_cache=InMemorySharedCache()
    )
    yield context
    context.close()


class TestFromEnv:
    """Tests for AuthContext.from_env."""

    def test_loads_providers_and_apps(self, context: AuthContext) -> None:
        assert context.providers.names() == ["alpha", "beta"]
        assert context.apps.names() == ["billing"]
        assert context.apps.get("billing").prefix == "alpha"
        assert context.validator.providers is context.providers

    def test_providers_required(self) -> None:
        with pytest.raises(ConfigurationMissingError) as exc_info:
            AuthContext.from_env(build_env(OAUTH_PROVIDERS=None), shared_cache=InMemorySharedCache())
        assert exc_info.value.keys == ["OAUTH_PROVIDERS"]

    def test_apps_optional(self) -> None:
        with AuthContext.from_env(build_env(OAUTH_APPS=None), shared_cache=InMemorySharedCache()) as context:
            assert len(context.apps) == 0
            assert context.acquirer.get_access_tokens("billing") == []

    def test_default_shared_cache_from_configuration(self) -> None:
        with AuthContext.from_env(build_env()) as context:
            assert isinstance(context.shared_cache, InMemorySharedCache)

    def test_close_on_exit(self) -> None:
        context = AuthContext.from_env(build_env(), shared_cache=InMemorySharedCache())
        with patch.object(context.transport, "close") as close:
            with context:
                pass
        close.assert_called_once_with()


def test_validate_then_clear_cache_refetches(
    context: AuthContext, recording_handler: RecordingHandler, signing_key: SigningKey
) -> None:
    serve_jwks(recording_handler, JWKS_URL_A, signing_key)
    token = signing_key.sign(claims_for(ISSUER_A))

    assert context.validator.validate_token(token).provider == "alpha"
    assert context.validator.validate_token(token).provider == "alpha"
    assert recording_handler.calls_to(JWKS_URL_A) == 1

    context.clear_cache()
    assert len(context.local_cache) == 0

    context.validator.validate_token(token)
    assert recording_handler.calls_to(JWKS_URL_A) == 2


def test_acquired_tokens_cleared_with_cache(context: AuthContext, recording_handler: RecordingHandler) -> None:
    recording_handler.set_json(TOKEN_URL_A, token_response("alpha-token"))
    recording_handler.set_json(TOKEN_URL_B, token_response("beta-token"))

    tokens = context.acquirer.get_access_tokens("billing")
    assert [t.access_token for t in tokens] == ["alpha-token", "beta-token"]
    context.acquirer.get_access_tokens("billing")
    assert recording_handler.calls_to(TOKEN_URL_A) == 1

    context.clear_cache()
    context.acquirer.get_access_tokens("billing")
    assert recording_handler.calls_to(TOKEN_URL_A) == 2
