"""Pytest configuration and fixtures for Graph MCP server tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from graph_mcp.auth.machine_key import KeyDeriver
from graph_mcp.auth.models import DeviceAuthorization, TokenResponse, TokenSet
from graph_mcp.auth.oauth import DeviceFlowClient
from graph_mcp.auth.storage import SecretStore
from graph_mcp.config import GraphSettings

T0 = 1_700_000_000_000


class FakeClock:
    """Controllable epoch-milliseconds clock."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(scope="session")
def key_deriver() -> KeyDeriver:
    """Key deriver bound to a fixed test machine identity."""
    return KeyDeriver(identity_provider=lambda: "test-machine-id")


@pytest.fixture
def secret_store(key_deriver: KeyDeriver) -> SecretStore:
    """Secret store using the test machine key."""
    return SecretStore(key_deriver)


@pytest.fixture
def settings(tmp_path: Path) -> GraphSettings:
    """Configured settings with a per-test data directory."""
    return GraphSettings(
        tenant_id="test-tenant-id",
        client_id="test-client-id",
        scopes=["User.Read", "offline_access"],
        data_dir=tmp_path / "data",
        max_poll_attempts=5,
        http_timeout=5,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_oauth() -> MagicMock:
    """Mock authorization-server client."""
    return MagicMock(spec=DeviceFlowClient)


@pytest.fixture
def make_device(clock: FakeClock):
    """Factory for device authorizations issued at the fake clock's time."""

    def _make(interval: int = 0, expires_in: int = 900, **overrides) -> DeviceAuthorization:
        fields = {
            "device_code": "device-code-123456",
            "user_code": "ABCD-EFGH",
            "verification_uri": "https://microsoft.com/devicelogin",
            "expires_in": expires_in,
            "interval": interval,
            "issued_at": clock.now,
        }
        fields.update(overrides)
        return DeviceAuthorization(**fields)

    return _make


@pytest.fixture
def mock_token_response() -> TokenResponse:
    """Token endpoint success payload."""
    return TokenResponse(
        access_token="access-token-new",
        refresh_token="refresh-token-new",
        expires_in=3600,
        token_type="Bearer",
    )


@pytest.fixture
def make_tokens(clock: FakeClock):
    """Factory for token sets expiring relative to the fake clock."""

    def _make(expires_at_offset_ms: int = 3600 * 1000, **overrides) -> TokenSet:
        fields = {
            "access_token": "access-token-old",
            "refresh_token": "refresh-token-old",
            "expires_in": 3600,
            "expires_at": clock.now + expires_at_offset_ms,
            "token_type": "Bearer",
        }
        fields.update(overrides)
        return TokenSet(**fields)

    return _make
