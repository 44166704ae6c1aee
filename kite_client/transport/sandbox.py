"""
Kite Client - Sandboxed Execution Target.

============================================================
PURPOSE
============================================================
Browser sandbox runtime (e.g. Pyodide) where the network is
reached through bindings provided by the host page.

- The host binding performs the request on the host event loop
- CSV bodies are returned as raw text; parsing is left to the
  host side

HOST BINDING CONTRACT:
    async fetch(method, url, headers, body) -> (status, headers, body)

============================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple, Union

from ..config import TimeoutConfig
from ..errors import KiteError, TransportError
from ..logging_utils import mask_url
from ..types import RawResponse
from .base import ExecutionTarget, Transport


logger = logging.getLogger(__name__)


HostFetch = Callable[
    [str, str, Dict[str, str], Optional[bytes]],
    Awaitable[Tuple[int, Dict[str, str], Union[bytes, str]]],
]


# ============================================================
# SANDBOX TRANSPORT
# ============================================================

class SandboxTransport(Transport):
    """Transport delegating to a host-provided fetch binding."""

    def __init__(
        self,
        fetch: HostFetch,
        timeout_config: Optional[TimeoutConfig] = None,
    ):
        self._fetch = fetch
        self._timeout_config = timeout_config or TimeoutConfig()

    @classmethod
    def from_pyodide(cls, timeout_config: Optional[TimeoutConfig] = None) -> "SandboxTransport":
        """
        Bind to pyodide.http.pyfetch.

        Only available inside a Pyodide runtime; elsewhere a host
        fetch binding must be passed explicitly.
        """
        try:
            from pyodide.http import pyfetch
        except ImportError as e:
            raise ValueError(
                "A host fetch binding is required outside a Pyodide runtime"
            ) from e

        async def fetch(method, url, headers, body):
            response = await pyfetch(
                url,
                method=method,
                headers=headers,
                body=body.decode("utf-8") if body else None,
            )
            payload = await response.bytes()
            return response.status, dict(response.headers), payload

        return cls(fetch, timeout_config)

    @property
    def name(self) -> str:
        return "host-fetch"

    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[bytes] = None,
    ) -> RawResponse:
        try:
            status, response_headers, payload = await asyncio.wait_for(
                self._fetch(method, url, dict(headers), body),
                timeout=self._timeout_config.total_timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise TransportError(
                f"Request timed out after {self._timeout_config.total_timeout_seconds}s",
                url=mask_url(url),
                timed_out=True,
            )
        except KiteError:
            raise
        except Exception as e:
            # Host bindings surface JS errors as arbitrary exceptions
            raise TransportError(f"Host fetch failed: {e}", url=mask_url(url))

        if isinstance(payload, str):
            payload = payload.encode("utf-8")

        return RawResponse(
            status=int(status),
            headers=dict(response_headers or {}),
            body=payload or b"",
            url=url,
        )


# ============================================================
# SANDBOX TARGET
# ============================================================

class SandboxTarget(ExecutionTarget):
    """Browser sandbox runtime: CSV stays raw text."""

    name = "sandbox"

    def __init__(
        self,
        transport: Optional[Transport] = None,
        fetch: Optional[HostFetch] = None,
        timeout_config: Optional[TimeoutConfig] = None,
    ):
        if transport is None:
            transport = (
                SandboxTransport(fetch, timeout_config)
                if fetch is not None
                else SandboxTransport.from_pyodide(timeout_config)
            )
        super().__init__(transport=transport, table_parser=None)
