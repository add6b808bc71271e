"""Shared pytest fixtures for m2mauth tests.

This module provides configuration and wired-up registries and caches used
across the auth, cache and CLI tests.
"""

from __future__ import annotations

import pytest

from m2mauth.cache import InMemorySharedCache
from m2mauth.config import Env
from m2mauth.registry import AppRegistry, ProviderRegistry
from m2mauth.testing.fixtures import FakeClock
from tests.factories import build_env

# Load m2mauth.testing fixtures (recording_handler, mock_transport, signing_key, fake_clock)
pytest_plugins = ["m2mauth.testing.fixtures"]


@pytest.fixture
def env() -> Env:
    return build_env()


@pytest.fixture
def providers(env: Env) -> ProviderRegistry:
    registry = ProviderRegistry(env)
    registry.load_from_env()
    return registry


@pytest.fixture
def apps(env: Env, providers: ProviderRegistry) -> AppRegistry:
    registry = AppRegistry(env)
    registry.load_from_env(providers=providers.names())
    return registry


@pytest.fixture
def shared_cache(fake_clock: FakeClock) -> InMemorySharedCache:
    return InMemorySharedCache(clock=fake_clock)
