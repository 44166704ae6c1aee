"""
Kite Client - Transport Package.

AVAILABLE TARGETS:
- NativeTarget: asyncio + pooled aiohttp session, CSV parsed
- SandboxTarget: host fetch binding, CSV returned raw

UTILITIES:
- TargetFactory: select a target by name
- MockTransport: in-memory transport for tests
"""

from .base import ExecutionTarget, TableParser, Transport
from .native import AiohttpTransport, CsvTableParser, NativeTarget
from .sandbox import HostFetch, SandboxTarget, SandboxTransport
from .mock import MockRequest, MockRoute, MockTransport
from .factory import TargetFactory


__all__ = [
    "ExecutionTarget",
    "TableParser",
    "Transport",
    "AiohttpTransport",
    "CsvTableParser",
    "NativeTarget",
    "HostFetch",
    "SandboxTarget",
    "SandboxTransport",
    "MockRequest",
    "MockRoute",
    "MockTransport",
    "TargetFactory",
]
