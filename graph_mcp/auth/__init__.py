"""Authentication module for Graph MCP server.

This module provides the credential lifecycle for Microsoft Graph access:

- Machine-bound key derivation (PBKDF2 over the host machine id)
- Encrypted file persistence of credentials (AES-256-GCM)
- OAuth 2.0 device-authorization flow with background polling
- Expiry-aware token vending and refresh

Usage:
    >>> from graph_mcp.auth import CredentialLifecycleManager
    >>> from graph_mcp.config import GraphSettings
    >>>
    >>> manager = CredentialLifecycleManager(GraphSettings.from_env())
    >>> manager.initialize()
    >>>
    >>> # Raises AuthenticationRequired with sign-in instructions on first run
    >>> token = manager.get_valid_access_token()
"""

from graph_mcp.auth.machine_key import KeyDeriver, read_machine_id
from graph_mcp.auth.manager import CredentialLifecycleManager
from graph_mcp.auth.models import (
    AuthInstructions,
    CredentialState,
    DeviceAuthorization,
    TokenResponse,
    TokenSet,
)
from graph_mcp.auth.oauth import DeviceFlowClient
from graph_mcp.auth.storage import EncryptedBlob, SecretStore

__all__ = [
    # Lifecycle
    "CredentialLifecycleManager",
    "CredentialState",
    # OAuth
    "DeviceFlowClient",
    "DeviceAuthorization",
    "TokenResponse",
    "TokenSet",
    "AuthInstructions",
    # Storage
    "SecretStore",
    "EncryptedBlob",
    "KeyDeriver",
    "read_machine_id",
]
