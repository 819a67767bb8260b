"""Custom exception hierarchy for Graph MCP Server.

This module defines a structured exception hierarchy for the error
conditions of the credential lifecycle: machine key derivation, encrypted
storage, the OAuth2 device-authorization flow, token refresh, and calls
to the Microsoft Graph API.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from graph_mcp.auth.models import AuthInstructions


class GraphMCPError(Exception):
    """Base exception for all Graph MCP Server errors.

    All custom exceptions in the Graph MCP Server inherit from this base class,
    enabling consistent error handling and catch-all exception handling patterns.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# Authentication
# =============================================================================


class AuthenticationError(GraphMCPError):
    """Exception raised for OAuth and credential-related errors.

    Examples:
        - Device code request rejected by the authorization server
        - Token endpoint returned an unexpected error
        - OAuth client is not configured
    """

    pass


class AuthenticationRequired(AuthenticationError):
    """Signal that the user must complete sign-in out of band.

    This is expected control flow, not a failure: it always carries the
    instructions (verification URI, user code, expiry) that must be relayed
    to a human. A background poll is already waiting for the user when
    this is raised.

    Attributes:
        instructions: Structured sign-in instructions.
    """

    def __init__(
        self,
        instructions: AuthInstructions,
        message: str = "Microsoft Graph authentication required",
    ) -> None:
        super().__init__(
            message,
            details={
                "verification_uri": instructions.verification_uri,
                "user_code": instructions.user_code,
                "expires_in": instructions.expires_in,
            },
        )
        self.instructions = instructions


class AuthorizationDeclined(AuthenticationError):
    """The user declined the device authorization request."""

    pass


class AuthorizationExpired(AuthenticationError):
    """The device code expired before the user completed sign-in."""

    pass


class AuthorizationTimeout(AuthorizationExpired):
    """Polling exhausted its attempt budget without a decision from the user."""

    pass


class ReauthenticationRequired(AuthenticationError):
    """The refresh token is invalid or expired.

    Stored credentials have been cleared; the next token request starts
    a fresh device flow.
    """

    pass


class OAuthServerError(AuthenticationError):
    """Error payload returned by the authorization server.

    Attributes:
        error: OAuth error code (e.g. "authorization_pending", "invalid_grant").
        status_code: HTTP status code of the response.
    """

    def __init__(
        self,
        message: str,
        error: str | None = None,
        status_code: int | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.error = error
        self.status_code = status_code


# =============================================================================
# Credential storage
# =============================================================================


class CredentialStorageError(GraphMCPError):
    """Exception raised for encryption, key derivation, or storage errors.

    Examples:
        - Encrypted file could not be written
        - Stored blob failed authentication
        - Machine identity could not be read
    """

    pass


class IdentityUnavailable(CredentialStorageError):
    """The host machine identity could not be read, so no key can be derived."""

    pass


class DecryptionFailed(CredentialStorageError):
    """An encrypted blob failed tag verification or could not be decoded.

    No plaintext, partial or otherwise, is ever returned alongside this error.
    """

    pass


class StorageCorrupted(CredentialStorageError):
    """A credential file exists but cannot be read, parsed, or decrypted.

    Distinct from "absent": the operator must clear storage to proceed.
    """

    pass


# =============================================================================
# Graph API and input validation
# =============================================================================


class GraphAPIError(GraphMCPError):
    """Exception raised for errors from Microsoft Graph API calls.

    Attributes:
        status_code: HTTP status code from the API response.
        error_code: Graph-specific error code, if available.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the Graph API error exception.

        Args:
            message: Human-readable error description.
            status_code: HTTP status code from the API response.
            error_code: Graph API-specific error code, if available.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.status_code = status_code
        self.error_code = error_code


class ValidationError(GraphMCPError):
    """Exception raised for input and configuration validation errors.

    Attributes:
        field: The name of the field that failed validation, if applicable.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field


__all__ = [
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
