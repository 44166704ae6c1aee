"""
Kite Client - Execution Target Base.

============================================================
PURPOSE
============================================================
Abstract interface over the runtime hosting the client.

An ExecutionTarget bundles the capabilities that differ
between runtimes:
- transport: how an HTTP exchange is performed
- table_parser: what happens to CSV bodies (None = raw text)

Request building and decoding never branch on the runtime;
they only use the capabilities injected here.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..types import RawResponse


logger = logging.getLogger(__name__)


# ============================================================
# TRANSPORT
# ============================================================

class Transport(ABC):
    """
    One HTTP exchange per call.

    Implementations must be safe for concurrent use and must
    raise TransportError for any failure that produced no
    HTTP response. Non-2xx responses are returned, not raised.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport identifier."""
        pass

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[bytes] = None,
    ) -> RawResponse:
        """
        Perform the request.

        Args:
            method: HTTP method
            url: Absolute URL including query string
            headers: Request headers
            body: Encoded request body, if any

        Returns:
            RawResponse
        """
        pass

    async def close(self) -> None:
        """Release pooled resources."""
        return None


# ============================================================
# TABLE PARSER
# ============================================================

class TableParser(ABC):
    """Turns a CSV body into records."""

    @abstractmethod
    def parse(self, text: str) -> List[Dict[str, Any]]:
        """Parse text, raising ParseError on malformed input."""
        pass


# ============================================================
# EXECUTION TARGET
# ============================================================

class ExecutionTarget:
    """Capabilities of one runtime."""

    name = "base"

    def __init__(
        self,
        transport: Transport,
        table_parser: Optional[TableParser] = None,
    ):
        self.transport = transport
        self.table_parser = table_parser

    @property
    def parses_csv(self) -> bool:
        return self.table_parser is not None

    async def close(self) -> None:
        await self.transport.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(transport={self.transport.name})"
