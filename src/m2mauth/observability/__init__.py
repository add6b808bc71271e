"""Observability module for m2mauth.

Structured logging (structlog) and in-process Prometheus-compatible metrics
for key set retrieval, token validation and token acquisition.

Example:
    >>> from m2mauth.observability import get_logger, get_metrics
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("m2mauth.jwks.fetched", provider="auth0")
    >>>
    >>> get_metrics().increment_counter("m2mauth_jwks_fetch_total", {"provider": "auth0"})
"""

from m2mauth.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    payload_for_logging,
    sanitize_for_logging,
)
from m2mauth.observability.metrics import (
    MetricsCollector,
    get_metrics,
    reset_metrics,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_metrics",
    "is_debug_mode",
    "payload_for_logging",
    "reset_metrics",
    "MetricsCollector",
    "sanitize_for_logging",
]
