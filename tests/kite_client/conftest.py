"""
Shared fixtures for kite_client tests.

Payload files under mocks/ mirror real Kite Connect responses.
"""

import json
from pathlib import Path

import pytest

from kite_client import ClientConfig, KiteConnect, MockTransport, NativeTarget, SandboxTarget


MOCKS_DIR = Path(__file__).parent / "mocks"

TEST_ROOT_URL = "https://api.kite.test"
TEST_API_KEY = "test_api_key"


def read_mock(name: str) -> str:
    return (MOCKS_DIR / name).read_text(encoding="utf-8")


def build_client(access_token: str = "", target: str = "native"):
    """Client over a MockTransport. Returns (kite, transport)."""
    transport = MockTransport()
    if target == "sandbox":
        execution_target = SandboxTarget(transport=transport)
    else:
        execution_target = NativeTarget(transport=transport)

    kite = KiteConnect(
        TEST_API_KEY,
        access_token,
        config=ClientConfig.for_testing(TEST_ROOT_URL, target=target),
        target=execution_target,
    )
    return kite, transport


@pytest.fixture
def mock_json():
    """Load a JSON payload from mocks/."""
    def _load(name: str):
        return json.loads(read_mock(name))
    return _load


@pytest.fixture
def mock_text():
    """Load a raw text payload from mocks/."""
    return read_mock


@pytest.fixture
def client():
    """Authenticated native client and its mock transport."""
    return build_client(access_token="test_access_token")


@pytest.fixture
def anonymous_client():
    """Native client with no access token yet."""
    return build_client()


@pytest.fixture
def sandbox_client():
    """Authenticated sandbox client and its mock transport."""
    return build_client(access_token="test_access_token", target="sandbox")
