"""structlog setup for m2mauth.

Log records from m2mauth (and anything else using stdlib ``logging``) go
through one root handler. Output is either coloured console lines for
development or one JSON object per line for production.

Outbound token requests carry client secrets; they are logged through
:func:`payload_for_logging`, which redacts credential fields unless
``M2MAUTH_DEBUG`` is on.

Environment Variables:
    M2MAUTH_LOG_FORMAT: "json" or "console" (default)
    M2MAUTH_LOG_LEVEL: DEBUG, INFO (default), WARNING, ERROR
    M2MAUTH_SERVICE_NAME: Value of the ``service`` field on every record
    M2MAUTH_DEBUG: "true"/"1"/"yes"/"on" to log token request bodies unredacted

Example:
    >>> configure_logging(log_format="json")
    >>> get_logger(__name__).info("m2mauth.jwks.fetched", provider="auth0")
"""

import logging
import os
import sys
from typing import Any, TextIO

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_SERVICE_NAME = "m2m-auth"

ENV_LOG_FORMAT = "M2MAUTH_LOG_FORMAT"
ENV_LOG_LEVEL = "M2MAUTH_LOG_LEVEL"
ENV_SERVICE_NAME = "M2MAUTH_SERVICE_NAME"
ENV_DEBUG = "M2MAUTH_DEBUG"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Matched as substrings of the lower-cased field name. Key ids and cache
# keys stay readable, so "key" is not a marker.
_CREDENTIAL_MARKERS = ("secret", "password", "token", "authorization", "assertion", "credential")

_TRUTHY = frozenset({"true", "1", "yes", "on"})

_configured = False


def _is_credential(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in _CREDENTIAL_MARKERS)


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return sanitize_for_logging(value)
    if isinstance(value, (list, tuple)):
        return [_scrub(item) for item in value]
    return value


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Copy ``data`` with credential values replaced by REDACTED_PLACEHOLDER.

    A field is a credential when its name contains secret, password, token,
    authorization, assertion or credential (case-insensitive). Nested dicts
    and lists are scrubbed as well; the input is never modified.

    Example:
        >>> sanitize_for_logging({"client_id": "abc", "client_secret": "s3cr3t"})
        {'client_id': 'abc', 'client_secret': '***REDACTED***'}
    """
    return {
        name: REDACTED_PLACEHOLDER if _is_credential(name) else _scrub(value)
        for name, value in (data or {}).items()
    }


def is_debug_mode() -> bool:
    return os.environ.get(ENV_DEBUG, "").strip().lower() in _TRUTHY


def payload_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Return ``data`` unchanged in debug mode, sanitized otherwise."""
    if is_debug_mode():
        return dict(data)
    return sanitize_for_logging(data)


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)


def _handler(stream: TextIO, renderer: Processor) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    return handler


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging through a single root handler.

    Only the first call takes effect unless ``force`` is set. Arguments left
    as None fall back to the M2MAUTH_* environment variables.

    Args:
        log_format: "json" or "console".
        log_level: Minimum level name for the root logger.
        service_name: Bound as ``service`` on every record.
        force: Reconfigure even if logging was already configured.
        stream: Destination of the handler (default ``sys.stdout``).
    """
    global _configured

    if _configured and not force:
        return

    log_format = (log_format or os.environ.get(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT)).lower()
    log_level = (log_level or os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()
    service_name = service_name or os.environ.get(ENV_SERVICE_NAME, DEFAULT_SERVICE_NAME)

    structlog.configure(
        processors=[*_shared_processors(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_handler(stream or sys.stdout, _renderer(log_format)))
    root.setLevel(getattr(logging, log_level))

    structlog.contextvars.bind_contextvars(service=service_name)
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values included in every subsequent record of this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
