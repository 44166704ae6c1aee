"""
Kite Client - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the Kite Connect client.

CRITICAL CONSTRAINTS:
- No retries, no backoff
- Per-attempt deadline is the only time limit
- Credentials are never part of configuration

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


# ============================================================
# CONSTANTS
# ============================================================

DEFAULT_ROOT_URL = "https://api.kite.trade"
DEFAULT_LOGIN_URL = "https://kite.trade/connect/login"
KITE_API_VERSION = "3"


# ============================================================
# TIMEOUT CONFIGURATION
# ============================================================

@dataclass
class TimeoutConfig:
    """
    Timeout configuration.

    Applied per request attempt by the transport.
    """

    connection_timeout_seconds: float = 5.0
    """Connection timeout."""

    total_timeout_seconds: float = 30.0
    """Deadline for the whole request/response exchange."""


# ============================================================
# CLIENT CONFIGURATION
# ============================================================

@dataclass
class ClientConfig:
    """
    Master configuration for the Kite client.
    """

    root_url: str = DEFAULT_ROOT_URL
    """REST API base URL."""

    login_url: str = DEFAULT_LOGIN_URL
    """Login page base URL."""

    api_version: str = KITE_API_VERSION
    """Value sent in the X-Kite-Version header."""

    user_agent: str = "kite-client-python/0.3.0"
    """User-Agent header value."""

    target: str = "native"
    """Execution target name (native or sandbox)."""

    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    """Timeout configuration."""

    debug: bool = False
    """Whether to log full (masked) request/response entries at INFO."""

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ClientConfig":
        """
        Create config from environment variables.

        Reads a .env file first if one is present.

        Args:
            dotenv_path: Optional explicit .env path

        Returns:
            ClientConfig
        """
        load_dotenv(dotenv_path)

        timeout = TimeoutConfig(
            connection_timeout_seconds=float(
                os.environ.get("KITE_CONNECT_TIMEOUT_SECONDS", "5.0")
            ),
            total_timeout_seconds=float(
                os.environ.get("KITE_TIMEOUT_SECONDS", "30.0")
            ),
        )

        return cls(
            root_url=os.environ.get("KITE_ROOT_URL", DEFAULT_ROOT_URL),
            login_url=os.environ.get("KITE_LOGIN_URL", DEFAULT_LOGIN_URL),
            target=os.environ.get("KITE_TARGET", "native").lower(),
            timeout=timeout,
            debug=os.environ.get("KITE_DEBUG", "").lower() in ("1", "true", "yes"),
        )

    @classmethod
    def for_testing(cls, root_url: str, target: str = "native") -> "ClientConfig":
        """Get configuration pointing at a local test server."""
        return cls(
            root_url=root_url.rstrip("/"),
            target=target,
            timeout=TimeoutConfig(
                connection_timeout_seconds=2.0,
                total_timeout_seconds=5.0,
            ),
        )
