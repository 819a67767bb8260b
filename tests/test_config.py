"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from graph_mcp.config import DEFAULT_SCOPES, GraphSettings
from graph_mcp.utils.errors import ValidationError

ENV_VARS = [
    "TENANT_ID",
    "CLIENT_ID",
    "GRAPH_SCOPES",
    "GRAPH_MCP_DATA_DIR",
    "TOKEN_EXPIRY_BUFFER_MS",
    "DEVICE_CODE_POLL_INTERVAL",
    "MAX_POLL_ATTEMPTS",
    "HTTP_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    """Tests for GraphSettings.from_env."""

    def test_defaults(self) -> None:
        settings = GraphSettings.from_env()

        assert settings.scopes == DEFAULT_SCOPES
        assert settings.token_expiry_buffer_ms == 300_000
        assert settings.poll_interval_seconds == 5
        assert settings.max_poll_attempts == 180
        assert settings.http_timeout == 30
        assert settings.data_dir.name == ".graph-mcp"
        assert not settings.is_configured

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        monkeypatch.setenv("TENANT_ID", "contoso-tenant")
        monkeypatch.setenv("CLIENT_ID", "contoso-client")
        monkeypatch.setenv("GRAPH_SCOPES", "User.Read offline_access")
        monkeypatch.setenv("GRAPH_MCP_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("MAX_POLL_ATTEMPTS", "12")

        settings = GraphSettings.from_env()

        assert settings.is_configured
        assert settings.scopes == ["User.Read", "offline_access"]
        assert settings.data_dir == tmp_path
        assert settings.token_file == tmp_path / "tokens.enc"
        assert settings.device_file == tmp_path / "device.enc"
        assert settings.max_poll_attempts == 12
        assert settings.token_url == (
            "https://login.microsoftonline.com/contoso-tenant/oauth2/v2.0/token"
        )

    def test_placeholder_values_are_not_configured(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TENANT_ID", "YOUR_TENANT_ID_HERE")
        monkeypatch.setenv("CLIENT_ID", "YOUR_CLIENT_ID_HERE")

        assert not GraphSettings.from_env().is_configured

    def test_non_integer_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_TIMEOUT", "thirty")

        with pytest.raises(ValidationError) as exc_info:
            GraphSettings.from_env()

        assert exc_info.value.field == "HTTP_TIMEOUT"
