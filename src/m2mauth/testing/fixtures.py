"""Pytest fixtures for m2mauth tests.

Fixtures (use with pytest, via ``pytest_plugins = ["m2mauth.testing.fixtures"]``):
    recording_handler: Fresh RecordingHandler.
    mock_transport: Transport backed by httpx.MockTransport(recording_handler).
    signing_key: RSA signing key with a self-signed certificate (kid "test-key-1").
    fake_clock: Controllable clock for caches and token expiry.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterator

import httpx
import pytest

from m2mauth.observability import reset_metrics
from m2mauth.testing.keys import SigningKey
from m2mauth.testing.mocks import RecordingHandler
from m2mauth.transport import Transport

DEFAULT_TEST_KID = "test-key-1"


class FakeClock:
    """Manually advanced clock, callable as epoch seconds; ``now()`` gives a UTC datetime."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.current, tz=timezone.utc)

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def recording_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def mock_transport(recording_handler: RecordingHandler) -> Iterator[Transport]:
    """Transport whose requests are served (and recorded) by ``recording_handler``."""
    transport = Transport(httpx.MockTransport(recording_handler))
    yield transport
    transport.close()


@pytest.fixture(scope="session")
def signing_key() -> SigningKey:
    """Session-wide signing key; RSA generation is slow."""
    return SigningKey.generate(DEFAULT_TEST_KID)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_metrics() -> Iterator[None]:
    reset_metrics()
    yield
    reset_metrics()
