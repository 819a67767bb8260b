"""Utility functions and helpers for Graph MCP Server.

This module provides common utilities including custom exceptions
and encryption helpers.
"""

from graph_mcp.utils.encryption import decrypt_data, derive_key, encrypt_data
from graph_mcp.utils.errors import (
    AuthenticationError,
    AuthenticationRequired,
    AuthorizationDeclined,
    AuthorizationExpired,
    AuthorizationTimeout,
    CredentialStorageError,
    DecryptionFailed,
    GraphAPIError,
    GraphMCPError,
    IdentityUnavailable,
    OAuthServerError,
    ReauthenticationRequired,
    StorageCorrupted,
    ValidationError,
)

__all__ = [
    # Encryption utilities
    "derive_key",
    "encrypt_data",
    "decrypt_data",
    # Exception hierarchy
    "GraphMCPError",
    "AuthenticationError",
    "AuthenticationRequired",
    "AuthorizationDeclined",
    "AuthorizationExpired",
    "AuthorizationTimeout",
    "ReauthenticationRequired",
    "OAuthServerError",
    "CredentialStorageError",
    "IdentityUnavailable",
    "DecryptionFailed",
    "StorageCorrupted",
    "GraphAPIError",
    "ValidationError",
]
