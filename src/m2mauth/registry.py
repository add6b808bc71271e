"""Provider and app registries.

Registries are append-only, ordered and deduplicated by (case-insensitive)
name. Insertion order is the fallback order the token validator uses when
trying providers. Entries are built once from an :class:`Env` at
registration time.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Generic, Iterable, Iterator, Optional, TypeVar

from m2mauth.config import ENV_APPS, ENV_PROVIDERS, Env
from m2mauth.models.entries import App, Provider, _Entry, _normalize_name
from m2mauth.observability import get_logger

logger = get_logger(__name__)

E = TypeVar("E", bound=_Entry)


class _Registry(ABC, Generic[E]):
    """Ordered, name-deduplicated collection of entries."""

    kind = "entry"

    def __init__(self, env: Optional[Env] = None) -> None:
        self._env = env if env is not None else Env()
        self._entries: list[E] = []
        self._lock = threading.Lock()

    @abstractmethod
    def _build(self, name: str, prefix: Optional[str]) -> E:
        """Construct the entry for ``name`` from configuration."""

    def add(self, name: str, prefix: Optional[str] = None) -> bool:
        """Register ``name``; returns False without changes if it already exists."""
        with self._lock:
            if any(entry.matches(name) for entry in self._entries):
                return False
            entry = self._build(name, prefix)
            self._entries.append(entry)
        logger.debug("m2mauth.registry.entry_added", kind=self.kind, name=entry.name, prefix=entry.prefix)
        return True

    def get(self, name: str) -> Optional[E]:
        with self._lock:
            return next((entry for entry in self._entries if entry.matches(name)), None)

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    __contains__ = exists

    def names(self) -> list[str]:
        with self._lock:
            return [entry.name for entry in self._entries]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __iter__(self) -> Iterator[E]:
        with self._lock:
            return iter(list(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} names={self.names()!r}>"


class ProviderRegistry(_Registry[Provider]):
    """Identity providers, in the order tokens are validated against them."""

    kind = "provider"

    def _build(self, name: str, prefix: Optional[str]) -> Provider:
        return Provider.from_env(self._env, name, prefix)

    def load_from_env(self, key: str = ENV_PROVIDERS) -> list[str]:
        """Register one provider per list item, using the item as name and prefix.

        Raises:
            ConfigurationMissingError: If the list key is not set.

        Returns:
            Names that were newly registered.
        """
        added = [
            _normalize_name(name) for name in self._env.get_list_required(key) if self.add(name, name)
        ]
        logger.info("m2mauth.registry.providers_loaded", providers=self.names())
        return added


class AppRegistry(_Registry[App]):
    """Downstream applications this process acquires access tokens for."""

    kind = "app"

    def _build(self, name: str, prefix: Optional[str]) -> App:
        return App.from_env(self._env, name, prefix)

    def load_from_env(
        self,
        key: str = ENV_APPS,
        prefix: Optional[str] = None,
        providers: Optional[Iterable[str]] = None,
    ) -> list[str]:
        """Register one app per list item.

        The key prefix is ``prefix`` when given, else the first provider
        name, else the app name itself.

        Args:
            key: List configuration key.
            prefix: Key prefix for every app.
            providers: Registered provider names, in registration order.

        Raises:
            ConfigurationMissingError: If the list key is not set.

        Returns:
            Names that were newly registered.
        """
        if prefix is None:
            prefix = next(iter(providers or ()), None)
        added = [
            _normalize_name(name)
            for name in self._env.get_list_required(key)
            if self.add(name, name if prefix is None else prefix)
        ]
        logger.info("m2mauth.registry.apps_loaded", apps=self.names())
        return added
