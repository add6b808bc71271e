"""Recording HTTP handler for ``httpx.MockTransport``.

Routes requests by URL to pre-set responses and records every request so
tests can assert exactly how many network calls were made.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Union

import httpx

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], Exception]


class RecordingHandler:
    """Callable handler for ``httpx.MockTransport`` that records requests.

    Attributes:
        requests: Every request received, in order.

    Example:
        >>> handler = RecordingHandler()
        >>> handler.set_json("https://a.example.com/jwks", {"keys": []})
        >>> transport = Transport(httpx.MockTransport(handler))
    """

    def __init__(self) -> None:
        self._routes: dict[str, Responder] = {}
        self.requests: list[httpx.Request] = []

    def set_response(self, url: str, responder: Responder) -> None:
        """Set the response (or a callable producing it, or an exception to raise) for ``url``."""
        self._routes[url] = responder

    def set_json(self, url: str, body: Any, status_code: int = 200) -> None:
        self.set_response(url, httpx.Response(status_code, json=body))

    def set_text(self, url: str, text: str, status_code: int = 200) -> None:
        self.set_response(url, httpx.Response(status_code, text=text))

    def calls_to(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)

    def json_bodies(self, url: str) -> list[Any]:
        return [json.loads(r.content) for r in self.requests if str(r.url) == url]

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def reset(self) -> None:
        self.requests.clear()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self._routes.get(str(request.url))
        if responder is None:
            return httpx.Response(404, json={"error": "not_found"})
        if isinstance(responder, Exception):
            raise responder
        if isinstance(responder, httpx.Response):
            # Fresh copy per call; a Response is single-use once sent.
            return httpx.Response(
                responder.status_code, headers=responder.headers, content=responder.content
            )
        return responder(request)
