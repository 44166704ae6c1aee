"""
Kite Client - Error Taxonomy.

============================================================
PURPOSE
============================================================
Single error channel for every failure of the request pipeline.

ERROR CATEGORIES:
1. NETWORK         - Request never reached the service
2. TIMEOUT         - Deadline expired in flight
3. AUTHENTICATION  - Missing/invalid token or checksum rejected
4. INPUT           - Service rejected the request parameters
5. ORDER           - Order placement/modification rejected
6. EXCHANGE        - Upstream/OMS failure reported by the service
7. PARSE           - Response was unreadable
8. UNKNOWN         - Unclassified

Nothing here retries. Callers decide.

============================================================
"""

import json
import logging
from enum import Enum
from typing import Any, Dict, Optional, Tuple


logger = logging.getLogger(__name__)


# ============================================================
# ERROR TAXONOMY
# ============================================================

class ErrorCategory(Enum):
    """Standardized error categories."""

    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    AUTHENTICATION = "AUTHENTICATION"
    PERMISSION = "PERMISSION"
    INPUT = "INPUT"
    ORDER = "ORDER"
    MARGIN = "MARGIN"
    HOLDING = "HOLDING"
    EXCHANGE = "EXCHANGE"
    DATA = "DATA"
    PARSE = "PARSE"
    UNKNOWN = "UNKNOWN"


# ============================================================
# EXCEPTIONS
# ============================================================

class KiteError(Exception):
    """Base class for all client errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        category: Optional[ErrorCategory] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        if category is not None:
            self.category = category

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": type(self).__name__,
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
        }

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"


class TransportError(KiteError):
    """Request never produced an HTTP response."""

    category = ErrorCategory.NETWORK

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        timed_out: bool = False,
    ):
        super().__init__(
            message,
            code="TMO_READ" if timed_out else "NET_CONNECTION_FAILED",
            category=ErrorCategory.TIMEOUT if timed_out else ErrorCategory.NETWORK,
        )
        self.url = url
        self.timed_out = timed_out

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["url"] = self.url
        result["timed_out"] = self.timed_out
        return result


class HttpStatusError(KiteError):
    """Service answered with a non-2xx status."""

    def __init__(
        self,
        status: int,
        body: str,
        error_type: Optional[str] = None,
        detail: Optional[Dict[str, Any]] = None,
        category: Optional[ErrorCategory] = None,
        url: Optional[str] = None,
    ):
        detail = detail or {}
        message = detail.get("message") or body[:200] or f"HTTP {status}"
        super().__init__(
            message,
            code=error_type or f"HTTP_{status}",
            category=category or self.category,
        )
        self.status = status
        self.body = body
        self.error_type = error_type
        self.detail = detail
        self.url = url

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            "status": self.status,
            "error_type": self.error_type,
            "detail": self.detail,
            "url": self.url,
        })
        return result

    def __str__(self) -> str:
        return f"[{self.category.value}] HTTP {self.status}: {self.message}"


class AuthenticationError(HttpStatusError):
    """
    Token missing, expired or rejected, or checksum mismatch.

    Raised with status 0 when the request was refused locally
    because no access token was set.
    """

    category = ErrorCategory.AUTHENTICATION

    @classmethod
    def missing_token(cls, endpoint: str) -> "AuthenticationError":
        return cls(
            status=0,
            body="",
            error_type="TokenException",
            detail={"message": f"No access token set for authenticated endpoint {endpoint}"},
            category=ErrorCategory.AUTHENTICATION,
        )


class ParseError(KiteError):
    """Response body did not match the expected format."""

    category = ErrorCategory.PARSE

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        preview: Optional[str] = None,
    ):
        super().__init__(message, code="PARSE_FAILED")
        self.context = context
        self.preview = preview

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["context"] = self.context
        result["preview"] = self.preview
        return result


# ============================================================
# KITE ERROR MAPPING
# ============================================================

# error_type values returned in the error envelope
KITE_ERROR_MAP: Dict[str, ErrorCategory] = {
    "TokenException": ErrorCategory.AUTHENTICATION,
    "UserException": ErrorCategory.AUTHENTICATION,
    "PermissionException": ErrorCategory.PERMISSION,
    "InputException": ErrorCategory.INPUT,
    "OrderException": ErrorCategory.ORDER,
    "MarginException": ErrorCategory.MARGIN,
    "HoldingException": ErrorCategory.HOLDING,
    "NetworkException": ErrorCategory.EXCHANGE,
    "DataException": ErrorCategory.DATA,
    "GeneralException": ErrorCategory.EXCHANGE,
}


def parse_error_body(body: str) -> Tuple[Optional[str], Dict[str, Any]]:
    """
    Extract the structured error envelope from a response body.

    Returns:
        (error_type, detail). detail is empty when the body is not JSON.
    """
    try:
        payload = json.loads(body) if body else None
    except ValueError:
        return None, {}

    if not isinstance(payload, dict):
        return None, {}

    return payload.get("error_type"), payload


def map_kite_error(
    status: int,
    body: str,
    url: Optional[str] = None,
) -> HttpStatusError:
    """
    Map a non-2xx response to a unified error.

    Args:
        status: HTTP status code
        body: Response body text
        url: Request URL (masked)

    Returns:
        HttpStatusError, or AuthenticationError for auth failures
    """
    error_type, detail = parse_error_body(body)

    if error_type in KITE_ERROR_MAP:
        category = KITE_ERROR_MAP[error_type]
    elif status in (401, 403):
        category = ErrorCategory.AUTHENTICATION
    elif status == 400:
        category = ErrorCategory.INPUT
    elif status >= 500:
        category = ErrorCategory.EXCHANGE
    else:
        category = ErrorCategory.UNKNOWN

    error_cls = (
        AuthenticationError
        if category == ErrorCategory.AUTHENTICATION
        else HttpStatusError
    )

    return error_cls(
        status=status,
        body=body,
        error_type=error_type,
        detail=detail,
        category=category,
        url=url,
    )
