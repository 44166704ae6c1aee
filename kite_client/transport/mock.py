"""
Kite Client - Mock Transport.

============================================================
PURPOSE
============================================================
In-memory transport for testing the pipeline and client.

FEATURES:
- Canned responses per (method, path)
- Per-route latency, to force out-of-order completion
- Error injection
- Full request recording

============================================================
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from ..errors import TransportError
from ..types import RawResponse
from .base import Transport


logger = logging.getLogger(__name__)


# ============================================================
# MOCK REQUEST / ROUTE
# ============================================================

@dataclass
class MockRequest:
    """A request captured by the mock transport."""

    method: str
    url: str
    path: str
    headers: Dict[str, str]
    query: Dict[str, List[str]] = field(default_factory=dict)
    form: Dict[str, List[str]] = field(default_factory=dict)
    body: Optional[bytes] = None

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None

    def param(self, name: str) -> Optional[str]:
        """First value of a query or form parameter."""
        values = self.query.get(name) or self.form.get(name)
        return values[0] if values else None


@dataclass
class MockRoute:
    """Canned response for one route."""

    status: int = 200
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    delay_seconds: float = 0.0
    handler: Optional[Callable[[MockRequest], RawResponse]] = None


# ============================================================
# MOCK TRANSPORT
# ============================================================

class MockTransport(Transport):
    """
    Transport answering from registered routes.

    Unregistered routes answer 404 with an error envelope.
    """

    def __init__(self):
        self._routes: Dict[Tuple[str, str], MockRoute] = {}
        self._pending_errors: List[Exception] = []
        self.requests: List[MockRequest] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "mock"

    # --------------------------------------------------------
    # ROUTE REGISTRATION
    # --------------------------------------------------------

    def add_response(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        text: Optional[str] = None,
        body: Optional[bytes] = None,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        delay_seconds: float = 0.0,
    ) -> None:
        """Register a canned response, replacing any previous one."""
        if json_body is not None:
            payload = json.dumps(json_body).encode("utf-8")
            content_type = "application/json"
        elif text is not None:
            payload = text.encode("utf-8")
            content_type = "text/csv"
        else:
            payload = body or b""
            content_type = "application/octet-stream"

        route_headers = {"Content-Type": content_type}
        route_headers.update(headers or {})

        self._routes[(method.upper(), path)] = MockRoute(
            status=status,
            body=payload,
            headers=route_headers,
            delay_seconds=delay_seconds,
        )

    def add_handler(
        self,
        method: str,
        path: str,
        handler: Callable[[MockRequest], RawResponse],
        delay_seconds: float = 0.0,
    ) -> None:
        """Register a callable computing the response from the request."""
        self._routes[(method.upper(), path)] = MockRoute(
            handler=handler,
            delay_seconds=delay_seconds,
        )

    def fail_next(self, error: Optional[Exception] = None) -> None:
        """Make the next send raise instead of answering."""
        self._pending_errors.append(error or TransportError("Connection refused"))

    # --------------------------------------------------------
    # TRANSPORT
    # --------------------------------------------------------

    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[bytes] = None,
    ) -> RawResponse:
        parts = urlsplit(url)
        form = parse_qs(body.decode("utf-8"), keep_blank_values=True) if body else {}

        request = MockRequest(
            method=method.upper(),
            url=url,
            path=parts.path,
            headers=dict(headers),
            query=parse_qs(parts.query, keep_blank_values=True),
            form=form,
            body=body,
        )
        self.requests.append(request)

        if self._pending_errors:
            raise self._pending_errors.pop(0)

        route = self._routes.get((request.method, request.path))
        if route is None:
            logger.debug(f"No mock route for {request.method} {request.path}")
            return RawResponse(
                status=404,
                headers={"Content-Type": "application/json"},
                body=json.dumps({
                    "status": "error",
                    "message": f"Route not found: {request.path}",
                    "error_type": "GeneralException",
                }).encode("utf-8"),
                url=url,
            )

        if route.delay_seconds:
            await asyncio.sleep(route.delay_seconds)

        if route.handler is not None:
            return route.handler(request)

        return RawResponse(
            status=route.status,
            headers=dict(route.headers),
            body=route.body,
            url=url,
        )

    async def close(self) -> None:
        self.closed = True

    # --------------------------------------------------------
    # INSPECTION
    # --------------------------------------------------------

    @property
    def last_request(self) -> Optional[MockRequest]:
        return self.requests[-1] if self.requests else None

    def requests_for(self, path: str) -> List[MockRequest]:
        return [r for r in self.requests if r.path == path]

    def reset(self) -> None:
        self.requests.clear()
        self._pending_errors.clear()
