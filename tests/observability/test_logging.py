"""Tests for structured logging configuration and payload redaction."""

import io
import json
import logging
from typing import Iterator
from unittest.mock import patch

import pytest
import structlog

from m2mauth.auth import TokenAcquirer
from m2mauth.observability.logging import (
    REDACTED_PLACEHOLDER,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    payload_for_logging,
    sanitize_for_logging,
)
from m2mauth.registry import AppRegistry, ProviderRegistry
from m2mauth.testing import RecordingHandler
from m2mauth.transport import Transport
from tests.factories import TOKEN_URL_A, TOKEN_URL_B


@pytest.fixture
def json_log_stream() -> Iterator[io.StringIO]:
    """JSON logs written to an in-memory stream; default configuration restored afterwards."""
    stream = io.StringIO()
    configure_logging(log_format="json", log_level="DEBUG", force=True, stream=stream)
    yield stream
    clear_context()
    configure_logging(force=True)


def _events(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_respects_log_level(self) -> None:
        configure_logging(log_format="console", log_level="WARNING", force=True)
        assert logging.getLogger().level == logging.WARNING
        configure_logging(force=True)

    def test_reads_environment(self) -> None:
        with patch.dict("os.environ", {"M2MAUTH_LOG_FORMAT": "json", "M2MAUTH_LOG_LEVEL": "ERROR"}):
            configure_logging(force=True)
            assert logging.getLogger().level == logging.ERROR
        configure_logging(force=True)

    def test_without_force_is_noop(self) -> None:
        configure_logging(log_level="DEBUG", force=True)
        configure_logging(log_level="ERROR")
        assert logging.getLogger().level == logging.DEBUG
        configure_logging(force=True)

    def test_json_output_carries_event_and_service(self, json_log_stream: io.StringIO) -> None:
        configure_logging(
            log_format="json", log_level="INFO", service_name="billing-api", force=True, stream=json_log_stream
        )
        get_logger("tests.logging").info("m2mauth.test.event", provider="auth0")

        event = _events(json_log_stream)[-1]
        assert event["event"] == "m2mauth.test.event"
        assert event["provider"] == "auth0"
        assert event["service"] == "billing-api"
        assert event["level"] == "info"


class TestContextBinding:
    """Tests for bind_context / clear_context."""

    def test_bind_and_clear(self) -> None:
        bind_context(request_id="req-1")
        assert structlog.contextvars.get_contextvars()["request_id"] == "req-1"
        clear_context()
        assert "request_id" not in structlog.contextvars.get_contextvars()

    def test_bound_context_in_output(self, json_log_stream: io.StringIO) -> None:
        bind_context(request_id="req-2")
        get_logger("tests.logging").info("m2mauth.test.bound")
        assert _events(json_log_stream)[-1]["request_id"] == "req-2"


class TestSanitizeForLogging:
    """Tests for sensitive value redaction."""

    def test_token_request_body_redacted(self) -> None:
        body = {
            "client_id": "abc",
            "client_secret": "s3cr3t",
            "audience": "https://api",
            "grant_type": "client_credentials",
        }
        result = sanitize_for_logging(body)
        assert result["client_secret"] == REDACTED_PLACEHOLDER
        assert result["client_id"] == "abc"
        assert result["audience"] == "https://api"

    def test_nested_and_lists(self) -> None:
        data = {"outer": {"access_token": "t"}, "items": [{"password": "p", "name": "n"}]}
        result = sanitize_for_logging(data)
        assert result["outer"]["access_token"] == REDACTED_PLACEHOLDER
        assert result["items"][0] == {"password": REDACTED_PLACEHOLDER, "name": "n"}

    def test_case_insensitive_keys(self) -> None:
        result = sanitize_for_logging({"Authorization": "Bearer x", "SECRET": "y"})
        assert set(result.values()) == {REDACTED_PLACEHOLDER}

    def test_key_ids_and_cache_keys_readable(self) -> None:
        data = {"kid": "key-1", "key": "oauth2:keys:auth0", "client_assertion": "jwt"}
        assert sanitize_for_logging(data) == {
            "kid": "key-1",
            "key": "oauth2:keys:auth0",
            "client_assertion": REDACTED_PLACEHOLDER,
        }

    def test_empty(self) -> None:
        assert sanitize_for_logging({}) == {}

    def test_input_not_mutated(self) -> None:
        data = {"client_secret": "s"}
        sanitize_for_logging(data)
        assert data == {"client_secret": "s"}


class TestDebugMode:
    """Tests for M2MAUTH_DEBUG handling."""

    @pytest.mark.parametrize(("value", "expected"), [("", False), ("false", False), ("true", True), ("1", True), ("YES", True)])
    def test_is_debug_mode(self, value: str, expected: bool) -> None:
        with patch.dict("os.environ", {"M2MAUTH_DEBUG": value}):
            assert is_debug_mode() is expected

    def test_payload_for_logging(self) -> None:
        with patch.dict("os.environ", {"M2MAUTH_DEBUG": "true"}):
            assert payload_for_logging({"client_secret": "s"}) == {"client_secret": "s"}
        with patch.dict("os.environ", {"M2MAUTH_DEBUG": ""}):
            assert payload_for_logging({"client_secret": "s"}) == {"client_secret": REDACTED_PLACEHOLDER}


def test_failed_token_request_log_redacts_secret(
    json_log_stream: io.StringIO,
    providers: ProviderRegistry,
    apps: AppRegistry,
    mock_transport: Transport,
    shared_cache,
    recording_handler: RecordingHandler,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Verify an exchange failure is logged with the request body, secret redacted."""
    monkeypatch.delenv("M2MAUTH_DEBUG", raising=False)
    recording_handler.set_json(TOKEN_URL_A, {"error": "invalid_client"}, status_code=401)
    recording_handler.set_json(TOKEN_URL_B, {"error": "invalid_client"}, status_code=401)

    TokenAcquirer(providers, apps, mock_transport, shared_cache).get_access_tokens("billing")

    failures = [e for e in _events(json_log_stream) if e["event"] == "m2mauth.token.request_failed"]
    assert [e["provider"] for e in failures] == ["alpha", "beta"]
    assert failures[0]["status"] == 401
    assert failures[0]["body"]["client_secret"] == REDACTED_PLACEHOLDER
    assert "alpha-secret" not in json_log_stream.getvalue()
