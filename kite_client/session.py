"""
Kite Client - Session Manager.

============================================================
PURPOSE
============================================================
Credential state and the pure parts of the login flow.

- ClientIdentity: immutable api_key + shared credential store
- CredentialStore: lock-protected access/refresh token cell
- login_url / compute_checksum: pure helpers

SHARING MODEL:
Cloned client handles share one CredentialStore by reference.
A token set through any handle is seen by every handle on its
next request. Requests already built keep the token they read.

The api_secret is never stored here.

============================================================
"""

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlencode

from .config import DEFAULT_LOGIN_URL, KITE_API_VERSION
from .logging_utils import mask_value


logger = logging.getLogger(__name__)


# ============================================================
# PURE HELPERS
# ============================================================

def login_url(
    api_key: str,
    base_url: str = DEFAULT_LOGIN_URL,
    version: str = KITE_API_VERSION,
) -> str:
    """
    Build the login page URL for an api_key.

    The api_key is embedded as given, without escaping.
    """
    return f"{base_url}?api_key={api_key}&{urlencode({'v': version})}"


def compute_checksum(api_key: str, token: str, api_secret: str) -> str:
    """
    Hex SHA-256 over api_key + token + api_secret.

    `token` is the request token for a session exchange, or the
    refresh token when renewing an access token.
    """
    payload = f"{api_key}{token}{api_secret}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


# ============================================================
# CREDENTIAL STORE
# ============================================================

class CredentialStore:
    """
    Synchronized holder for the mutable session credentials.

    Mutation is synchronous so it can happen from any thread;
    readers take a consistent snapshot.
    """

    def __init__(self, access_token: str = ""):
        self._lock = threading.Lock()
        self._access_token = access_token or ""
        self._refresh_token: Optional[str] = None

    @property
    def access_token(self) -> str:
        with self._lock:
            return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        with self._lock:
            return self._refresh_token

    def set_access_token(self, access_token: str) -> None:
        with self._lock:
            self._access_token = access_token or ""
        logger.debug(f"Access token set ({mask_value(access_token)})")

    def set_refresh_token(self, refresh_token: Optional[str]) -> None:
        with self._lock:
            self._refresh_token = refresh_token

    def update(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """Replace both tokens atomically. A None refresh token keeps the old one."""
        with self._lock:
            self._access_token = access_token or ""
            if refresh_token is not None:
                self._refresh_token = refresh_token

    def clear(self) -> None:
        with self._lock:
            self._access_token = ""
            self._refresh_token = None

    @property
    def has_access_token(self) -> bool:
        return bool(self.access_token)


# ============================================================
# CLIENT IDENTITY
# ============================================================

@dataclass(frozen=True)
class ClientIdentity:
    """API key plus the credential store it authenticates with."""

    api_key: str
    credentials: CredentialStore = field(default_factory=CredentialStore, compare=False)

    @classmethod
    def create(cls, api_key: str, access_token: str = "") -> "ClientIdentity":
        return cls(api_key=api_key, credentials=CredentialStore(access_token))

    @property
    def access_token(self) -> str:
        return self.credentials.access_token

    def authorization_header(self, access_token: Optional[str] = None) -> str:
        """Value of the Authorization header, for the current token by default."""
        if access_token is None:
            access_token = self.credentials.access_token
        return f"token {self.api_key}:{access_token}"

    def login_url(
        self,
        base_url: str = DEFAULT_LOGIN_URL,
        version: str = KITE_API_VERSION,
    ) -> str:
        return login_url(self.api_key, base_url, version)

    def checksum(self, token: str, api_secret: str) -> str:
        return compute_checksum(self.api_key, token, api_secret)
