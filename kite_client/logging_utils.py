"""
Kite Client - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Secure logging for API requests with:
- Credential masking (api_key:access_token, checksum, tokens)
- Structured JSON request/response entries
- Request IDs for correlating a response with its request

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log raw access tokens or secrets
2. Mask the Authorization header
3. Mask checksum, request_token, refresh_token, api_secret params
4. Log a hash of bodies, never the body itself

============================================================
"""

import hashlib
import itertools
import json
import logging
import re
import sys
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

# Header names that should be masked
SENSITIVE_HEADERS = {
    "authorization",
    "x-api-key",
    "cookie",
    "set-cookie",
}

# Parameter names that should be masked
SENSITIVE_PARAMS = {
    "api_secret",
    "secret",
    "checksum",
    "password",
    "access_token",
    "request_token",
    "refresh_token",
    "public_token",
    "enctoken",
}

# Regex patterns for sensitive data
SENSITIVE_PATTERNS = [
    (re.compile(r'[a-f0-9]{64}', re.IGNORECASE), "***SHA256***"),  # checksums
    (re.compile(r'[A-Za-z0-9]{32,}'), "***KEY***"),  # tokens (32+ chars)
]


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: Optional[str], show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Mask sensitive headers."""
    if not headers:
        return {}

    masked = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = mask_value(str(value))
        else:
            masked[key] = value
    return masked


def mask_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mask sensitive parameters.

    Nested dicts are masked recursively; string values are
    scanned for token-like patterns.
    """
    if not params:
        return {}

    masked = {}
    for key, value in params.items():
        if key.lower() in SENSITIVE_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, dict):
            masked[key] = mask_params(value)
        elif isinstance(value, str):
            masked_value = value
            for pattern, replacement in SENSITIVE_PATTERNS:
                masked_value = pattern.sub(replacement, masked_value)
            masked[key] = masked_value
        else:
            masked[key] = value
    return masked


def mask_url(url: str) -> str:
    """Mask sensitive query parameters in a URL."""
    if not url:
        return url

    for param in SENSITIVE_PARAMS:
        pattern = re.compile(f'({param}=)([^&]+)', re.IGNORECASE)
        url = pattern.sub(lambda m: f'{m.group(1)}***', url)

    return url


# ============================================================
# LOG ENTRY STRUCTURES
# ============================================================

@dataclass
class RequestLogEntry:
    """Structured log entry for requests."""

    timestamp: str
    operation: str
    method: str
    url: str
    request_id: str

    headers: Dict[str, str] = None
    params: Dict[str, Any] = None
    body_hash: str = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class ResponseLogEntry:
    """Structured log entry for responses."""

    timestamp: str
    operation: str
    request_id: str

    status_code: int
    latency_ms: float
    success: bool

    error_code: str = None
    error_message: str = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# ============================================================
# CLIENT LOGGER
# ============================================================

class ClientLogger:
    """
    Secure logger for API request/response pairs.

    Safe to share between concurrent tasks: request IDs come
    from an atomic counter.
    """

    def __init__(self, logger_name: str = "kite_client.http", verbose: bool = False):
        self._logger = logging.getLogger(logger_name)
        self._verbose = verbose
        self._counter = itertools.count(1)

    def _generate_request_id(self) -> str:
        return f"kite-{next(self._counter)}"

    @staticmethod
    def _hash_body(body: Any) -> Optional[str]:
        if not body:
            return None
        if isinstance(body, (dict, list)):
            body_str = json.dumps(body, sort_keys=True, default=str)
        else:
            body_str = str(body)
        return hashlib.sha256(body_str.encode()).hexdigest()[:16]

    def log_request(
        self,
        operation: str,
        method: str,
        url: str,
        headers: Dict[str, str] = None,
        params: Dict[str, Any] = None,
        body: Any = None,
    ) -> str:
        """
        Log outgoing request.

        Returns:
            Request ID for correlation
        """
        request_id = self._generate_request_id()

        entry = RequestLogEntry(
            timestamp=datetime.utcnow().isoformat(),
            operation=operation,
            method=method,
            url=mask_url(url),
            request_id=request_id,
            headers=mask_headers(headers) if headers else None,
            params=mask_params(params) if params else None,
            body_hash=self._hash_body(body),
        )

        level = logging.INFO if self._verbose else logging.DEBUG
        self._logger.log(level, f"REQUEST: {entry.to_json()}")
        return request_id

    def log_response(
        self,
        operation: str,
        request_id: str,
        status_code: int,
        latency_ms: float,
        success: bool,
        error_code: str = None,
        error_message: str = None,
    ) -> None:
        """Log incoming response, or the failure that replaced it."""
        entry = ResponseLogEntry(
            timestamp=datetime.utcnow().isoformat(),
            operation=operation,
            request_id=request_id,
            status_code=status_code,
            latency_ms=round(latency_ms, 3),
            success=success,
            error_code=error_code,
            error_message=error_message[:200] if error_message else None,
        )

        if success:
            level = logging.INFO if self._verbose else logging.DEBUG
            self._logger.log(level, f"RESPONSE: {entry.to_json()}")
        else:
            self._logger.warning(f"RESPONSE_ERROR: {entry.to_json()}")


# ============================================================
# SETUP
# ============================================================

def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure root logging for command-line use."""
    if fmt == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": %(message)r}'
    else:
        log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        stream=sys.stderr,
    )
