"""
Kite Client.

Async client for the Kite Connect v3 REST API.

COMPONENTS:
- KiteConnect: session flow and per-endpoint methods
- RequestPipeline: request building, authentication, dispatch
- ResponseDecoder: JSON and CSV decoding
- Execution targets: native (aiohttp) and sandbox (host fetch)
"""

from .config import ClientConfig, TimeoutConfig
from .connect import KiteConnect
from .decoder import ResponseDecoder, unwrap_data
from .errors import (
    AuthenticationError,
    ErrorCategory,
    HttpStatusError,
    KiteError,
    ParseError,
    TransportError,
)
from .metrics import RequestMetrics
from .pipeline import RequestPipeline
from .session import ClientIdentity, CredentialStore, compute_checksum, login_url
from .transport import MockTransport, NativeTarget, SandboxTarget, TargetFactory
from .types import EndpointDescriptor, HttpMethod, RawResponse, ResponseFormat


__version__ = "0.3.0"

__all__ = [
    "ClientConfig",
    "TimeoutConfig",
    "KiteConnect",
    "ResponseDecoder",
    "unwrap_data",
    "AuthenticationError",
    "ErrorCategory",
    "HttpStatusError",
    "KiteError",
    "ParseError",
    "TransportError",
    "RequestMetrics",
    "RequestPipeline",
    "ClientIdentity",
    "CredentialStore",
    "compute_checksum",
    "login_url",
    "MockTransport",
    "NativeTarget",
    "SandboxTarget",
    "TargetFactory",
    "EndpointDescriptor",
    "HttpMethod",
    "RawResponse",
    "ResponseFormat",
]
