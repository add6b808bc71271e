"""Outbound HTTP transport for key set retrieval and token exchange.

Every request carries the same fixed 2 second connect/read/write/pool
timeout and JSON headers; there is no per-call override. Network errors
and timeouts propagate as ``httpx.HTTPError`` for the caller to classify.
"""

from __future__ import annotations

import time
from types import TracebackType
from typing import Any, Optional

import httpx

from m2mauth.observability import get_logger, get_metrics

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 2.0

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class Transport:
    """Synchronous HTTP transport with fixed timeouts.

    Example:
        >>> with Transport() as transport:
        ...     response = transport.get("https://auth.example.com/.well-known/jwks.json")
    """

    def __init__(self, transport: Optional[httpx.BaseTransport] = None) -> None:
        """Initialize the transport.

        Args:
            transport: Optional httpx transport for testing (e.g. MockTransport).
        """
        kwargs: dict[str, Any] = {
            "timeout": httpx.Timeout(DEFAULT_TIMEOUT_SECONDS),
            "headers": DEFAULT_HEADERS,
            "verify": True,
        }
        if transport is not None:
            kwargs["transport"] = transport
        self._client = httpx.Client(**kwargs)

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        started = time.perf_counter()
        outcome = "error"
        try:
            response = self._client.request(method, url, **kwargs)
            outcome = str(response.status_code)
            return response
        finally:
            get_metrics().observe_histogram(
                "m2mauth_http_request_duration_seconds",
                time.perf_counter() - started,
                {"method": method, "status": outcome},
            )

    def get(self, url: str) -> httpx.Response:
        return self._request("GET", url)

    def post_json(self, url: str, body: dict[str, Any]) -> httpx.Response:
        return self._request("POST", url, json=body)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()
