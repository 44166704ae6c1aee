"""
Kite Client - Request Pipeline.

============================================================
PURPOSE
============================================================
Builds, authenticates and dispatches one request per call.

FLOW:
1. Render the descriptor's route with path parameters
2. Encode parameters (query for GET/DELETE, form for POST/PUT)
3. Attach X-Kite-Version on every request, Authorization
   when the descriptor requires it
4. Send through the execution target's transport
5. Surface transport failures and non-2xx statuses as errors

CRITICAL CONSTRAINTS:
- One attempt per call. No retries, no backoff
- No request-scoped shared state; safe for concurrent calls
- The access token is read once, when the request is built

============================================================
"""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

from .config import ClientConfig
from .decoder import ResponseDecoder
from .errors import AuthenticationError, KiteError, map_kite_error
from .logging_utils import ClientLogger, mask_url
from .metrics import RequestMetrics
from .session import ClientIdentity
from .transport.base import ExecutionTarget
from .types import EndpointDescriptor, RawResponse


logger = logging.getLogger(__name__)


Params = Mapping[str, Any]


def encode_params(params: Optional[Params]) -> List[Tuple[str, str]]:
    """
    Flatten parameters into key/value pairs.

    None values are dropped; list values become repeated keys.
    """
    pairs: List[Tuple[str, str]] = []
    if not params:
        return pairs

    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _stringify(item)) for item in value if item is not None)
        else:
            pairs.append((key, _stringify(value)))
    return pairs


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class RequestPipeline:
    """
    Authenticated request pipeline.

    Shared by every cloned client handle.
    """

    def __init__(
        self,
        identity: ClientIdentity,
        target: ExecutionTarget,
        config: Optional[ClientConfig] = None,
        metrics: Optional[RequestMetrics] = None,
    ):
        self.identity = identity
        self.target = target
        self.config = config or ClientConfig()
        self.metrics = metrics or RequestMetrics()
        self.decoder = ResponseDecoder(target.table_parser)
        self._log = ClientLogger(verbose=self.config.debug)

    # --------------------------------------------------------
    # REQUEST BUILDING
    # --------------------------------------------------------

    def build_headers(self, descriptor: EndpointDescriptor) -> Dict[str, str]:
        headers = {
            "X-Kite-Version": self.config.api_version,
            "User-Agent": self.config.user_agent,
        }

        if descriptor.requires_auth:
            access_token = self.identity.access_token
            if not access_token:
                raise AuthenticationError.missing_token(descriptor.name)
            headers["Authorization"] = self.identity.authorization_header(access_token)

        return headers

    def build_url(self, descriptor: EndpointDescriptor, path_params: Optional[Mapping[str, Any]] = None) -> str:
        path = descriptor.path(**(path_params or {}))
        return f"{self.config.root_url.rstrip('/')}{path}"

    # --------------------------------------------------------
    # EXECUTION
    # --------------------------------------------------------

    async def execute(
        self,
        descriptor: EndpointDescriptor,
        params: Optional[Params] = None,
        path_params: Optional[Mapping[str, Any]] = None,
    ) -> RawResponse:
        """
        Send one request and return the successful raw response.

        Raises:
            AuthenticationError: token missing, or rejected by the service
            TransportError: request never produced a response
            HttpStatusError: non-2xx response
        """
        headers = self.build_headers(descriptor)
        url = self.build_url(descriptor, path_params)
        pairs = encode_params(params)

        body = None
        if descriptor.http_method.sends_body:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
            body = urlencode(pairs).encode("utf-8")
        elif pairs:
            url = f"{url}?{urlencode(pairs)}"

        method = descriptor.http_method.value
        request_id = self._log.log_request(
            operation=descriptor.name,
            method=method,
            url=url,
            headers=headers,
            params=dict(pairs),
            body=body,
        )

        start = time.monotonic()
        try:
            raw = await self.target.transport.send(method, url, headers, body)
        except KiteError as e:
            self._record_failure(descriptor, request_id, start, 0, e)
            raise

        if not raw.ok:
            error = map_kite_error(raw.status, raw.text, url=mask_url(url))
            self._record_failure(descriptor, request_id, start, raw.status, error)
            raise error

        latency_ms = (time.monotonic() - start) * 1000
        self.metrics.record_request(descriptor.name, latency_ms, success=True)
        self._log.log_response(
            operation=descriptor.name,
            request_id=request_id,
            status_code=raw.status,
            latency_ms=latency_ms,
            success=True,
        )
        return raw

    async def request(
        self,
        descriptor: EndpointDescriptor,
        params: Optional[Params] = None,
        path_params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Execute and decode according to the descriptor's format."""
        raw = await self.execute(descriptor, params, path_params)
        return self.decoder.decode(raw, descriptor.response_format)

    def _record_failure(
        self,
        descriptor: EndpointDescriptor,
        request_id: str,
        start: float,
        status: int,
        error: KiteError,
    ) -> None:
        latency_ms = (time.monotonic() - start) * 1000
        self.metrics.record_request(
            descriptor.name,
            latency_ms,
            success=False,
            error_category=error.category.value,
        )
        self._log.log_response(
            operation=descriptor.name,
            request_id=request_id,
            status_code=status,
            latency_ms=latency_ms,
            success=False,
            error_code=error.code,
            error_message=error.message,
        )
