"""
Kite Client - Native Execution Target.

============================================================
PURPOSE
============================================================
asyncio process with a pooled aiohttp session.

- One ClientSession per transport, shared by cloned clients
- Per-attempt deadline from TimeoutConfig
- CSV bodies parsed into row dicts with the csv module

============================================================
"""

import asyncio
import csv
import io
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import TimeoutConfig
from ..errors import ParseError, TransportError
from ..logging_utils import mask_url
from ..types import RawResponse
from .base import ExecutionTarget, TableParser, Transport


logger = logging.getLogger(__name__)


# ============================================================
# AIOHTTP TRANSPORT
# ============================================================

class AiohttpTransport(Transport):
    """
    Pooled HTTP transport.

    The session is created lazily inside the running loop.
    """

    def __init__(
        self,
        timeout_config: Optional[TimeoutConfig] = None,
        connection_limit: int = 100,
    ):
        self._timeout_config = timeout_config or TimeoutConfig()
        self._connection_limit = connection_limit
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def name(self) -> str:
        return "aiohttp"

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._session.closed

    def _get_session(self) -> aiohttp.ClientSession:
        if not self.is_open:
            timeout = aiohttp.ClientTimeout(
                connect=self._timeout_config.connection_timeout_seconds,
                total=self._timeout_config.total_timeout_seconds,
            )
            connector = aiohttp.TCPConnector(limit=self._connection_limit)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
            logger.debug("Opened pooled HTTP session")
        return self._session

    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[bytes] = None,
    ) -> RawResponse:
        session = self._get_session()

        try:
            async with session.request(method, url, headers=headers, data=body) as response:
                payload = await response.read()
                return RawResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    body=payload,
                    url=str(response.url),
                )
        except asyncio.TimeoutError:
            raise TransportError(
                f"Request timed out after {self._timeout_config.total_timeout_seconds}s",
                url=mask_url(url),
                timed_out=True,
            )
        except aiohttp.ClientError as e:
            raise TransportError(f"Network error: {e}", url=mask_url(url))

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
            logger.debug("Closed pooled HTTP session")


# ============================================================
# CSV TABLE PARSER
# ============================================================

class CsvTableParser(TableParser):
    """
    Header-row CSV to list of dicts, all values as strings.

    Rows with missing or extra fields are parse failures.
    """

    def __init__(self, delimiter: str = ","):
        self._delimiter = delimiter

    def parse(self, text: str) -> List[Dict[str, Any]]:
        reader = csv.DictReader(io.StringIO(text), delimiter=self._delimiter, strict=True)
        rows = []
        try:
            for row in reader:
                if None in row or None in row.values():
                    raise ParseError(
                        f"Malformed CSV row {reader.line_num}: expected {len(reader.fieldnames)} fields",
                        context="csv",
                        preview=text[:200],
                    )
                rows.append(row)
        except csv.Error as e:
            raise ParseError(
                f"Invalid CSV at line {reader.line_num}: {e}",
                context="csv",
                preview=text[:200],
            )
        return rows


# ============================================================
# NATIVE TARGET
# ============================================================

class NativeTarget(ExecutionTarget):
    """Native asyncio runtime."""

    name = "native"

    def __init__(
        self,
        transport: Optional[Transport] = None,
        timeout_config: Optional[TimeoutConfig] = None,
    ):
        super().__init__(
            transport=transport or AiohttpTransport(timeout_config),
            table_parser=CsvTableParser(),
        )
