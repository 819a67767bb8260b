"""Runtime configuration for Graph MCP Server.

Settings are read from environment variables (a ``.env`` file is loaded
by the entry point before this module is consulted). Nothing here
performs I/O beyond reading the environment.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from graph_mcp.utils.errors import ValidationError

logger = logging.getLogger(__name__)

# Microsoft identity platform endpoints
AUTHORITY_HOST = "https://login.microsoftonline.com"
GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"

DEFAULT_SCOPES = [
    "Calendars.Read",
    "Calendars.ReadWrite",
    "Contacts.Read",
    "Mail.Read",
    "Mail.ReadWrite",
    "Mail.Send",
    "User.Read",
    "openid",
    "profile",
    "email",
    "offline_access",
]

# Values shipped in the config template; treated as "not configured"
PLACEHOLDER_VALUES = {"", "YOUR_TENANT_ID_HERE", "YOUR_CLIENT_ID_HERE"}

TOKEN_FILE_NAME = "tokens.enc"
DEVICE_FILE_NAME = "device.enc"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValidationError(
            f"{name} must be an integer",
            field=name,
            details={"value": raw},
        ) from e


class GraphSettings(BaseModel):
    """Configuration for the credential lifecycle and Graph API access.

    Attributes:
        tenant_id: Entra ID tenant (directory) ID.
        client_id: Public client (application) ID.
        scopes: OAuth scopes requested during the device flow.
        data_dir: Directory holding the encrypted credential files.
        token_expiry_buffer_ms: Refresh this long before the token expires.
        poll_interval_seconds: Poll interval used when the server omits one.
        max_poll_attempts: Upper bound on token-endpoint polls per flow.
        http_timeout: Timeout in seconds for every HTTP request.
        graph_api_base: Base URL of the Microsoft Graph API.
    """

    tenant_id: str = ""
    client_id: str = ""
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".graph-mcp")
    token_expiry_buffer_ms: int = 5 * 60 * 1000
    poll_interval_seconds: float = 5
    max_poll_attempts: int = 180
    http_timeout: float = 30
    authority_host: str = AUTHORITY_HOST
    graph_api_base: str = GRAPH_API_BASE

    @classmethod
    def from_env(cls) -> GraphSettings:
        """Build settings from environment variables.

        Raises:
            ValidationError: If a numeric variable is not an integer.
        """
        scopes_raw = os.getenv("GRAPH_SCOPES")
        data_dir_raw = os.getenv("GRAPH_MCP_DATA_DIR")

        settings = cls(
            tenant_id=os.getenv("TENANT_ID", ""),
            client_id=os.getenv("CLIENT_ID", ""),
            scopes=scopes_raw.split() if scopes_raw else list(DEFAULT_SCOPES),
            data_dir=(
                Path(data_dir_raw).expanduser()
                if data_dir_raw
                else Path.home() / ".graph-mcp"
            ),
            token_expiry_buffer_ms=_env_int("TOKEN_EXPIRY_BUFFER_MS", 5 * 60 * 1000),
            poll_interval_seconds=_env_int("DEVICE_CODE_POLL_INTERVAL", 5),
            max_poll_attempts=_env_int("MAX_POLL_ATTEMPTS", 180),
            http_timeout=_env_int("HTTP_TIMEOUT", 30),
        )

        if not settings.is_configured:
            logger.warning(
                "OAuth client not configured. Set TENANT_ID and CLIENT_ID "
                "environment variables."
            )
        return settings

    @property
    def is_configured(self) -> bool:
        """True when both tenant and client IDs are set to real values."""
        return (
            self.tenant_id.strip() not in PLACEHOLDER_VALUES
            and self.client_id.strip() not in PLACEHOLDER_VALUES
        )

    @property
    def device_code_url(self) -> str:
        return f"{self.authority_host}/{self.tenant_id}/oauth2/v2.0/devicecode"

    @property
    def token_url(self) -> str:
        return f"{self.authority_host}/{self.tenant_id}/oauth2/v2.0/token"

    @property
    def scope_string(self) -> str:
        return " ".join(self.scopes)

    @property
    def token_file(self) -> Path:
        return self.data_dir / TOKEN_FILE_NAME

    @property
    def device_file(self) -> Path:
        return self.data_dir / DEVICE_FILE_NAME


__all__ = [
    "GraphSettings",
    "AUTHORITY_HOST",
    "GRAPH_API_BASE",
    "DEFAULT_SCOPES",
]
