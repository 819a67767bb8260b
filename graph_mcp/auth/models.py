"""Pydantic models for the credential lifecycle.

Timestamps are epoch milliseconds, matching what the token endpoint's
``expires_in`` (seconds) is converted into.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class CredentialState(str, Enum):
    """Lifecycle state of the credential manager.

    Attributes:
        UNINITIALIZED: initialize() has not run yet.
        NO_CREDENTIALS: No token set and no device flow in progress.
        AWAITING_AUTHORIZATION: A device flow is waiting for the user.
        AUTHENTICATED: A token set is held and fresh.
        EXPIRING: A token set is held but inside the refresh buffer.
    """

    UNINITIALIZED = "uninitialized"
    NO_CREDENTIALS = "no_credentials"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    AUTHENTICATED = "authenticated"
    EXPIRING = "expiring"


class DeviceAuthorization(BaseModel):
    """A device code issued by the authorization server.

    Created when a device flow starts, consumed by the polling loop, and
    discarded once a token is obtained or the flow ends.
    """

    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int = Field(..., description="Seconds until the device code expires")
    interval: int = Field(default=5, description="Minimum seconds between polls")
    issued_at: int = Field(
        default_factory=now_ms,
        description="Epoch milliseconds when the code was issued",
    )

    @property
    def expires_at(self) -> int:
        return self.issued_at + self.expires_in * 1000

    def is_expired(self, now: int | None = None) -> bool:
        """Check whether the device code has expired.

        Args:
            now: Epoch milliseconds to compare against (defaults to now).
        """
        if now is None:
            now = now_ms()
        return now >= self.expires_at


class TokenResponse(BaseModel):
    """Successful payload of the token endpoint."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int
    token_type: str = "Bearer"
    scope: str | None = None


class TokenSet(BaseModel):
    """The current access/refresh token pair.

    Replaced wholesale on every issuance; ``expires_at`` is always the issue
    time plus ``expires_in`` seconds.
    """

    access_token: str
    refresh_token: str | None = None
    expires_in: int
    expires_at: int = Field(..., description="Epoch milliseconds of expiry")
    token_type: str = "Bearer"

    @classmethod
    def issue(
        cls,
        response: TokenResponse,
        issued_at: int,
        previous_refresh_token: str | None = None,
    ) -> TokenSet:
        """Build a token set from a token endpoint response.

        Args:
            response: Parsed token endpoint payload.
            issued_at: Epoch milliseconds at which the response was received.
            previous_refresh_token: Kept when the server does not rotate
                the refresh token.
        """
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token or previous_refresh_token,
            expires_in=response.expires_in,
            expires_at=issued_at + response.expires_in * 1000,
            token_type=response.token_type,
        )

    def needs_refresh(self, now: int, buffer_ms: int) -> bool:
        """True when the token is expired or within ``buffer_ms`` of expiry."""
        return now >= self.expires_at - buffer_ms


class AuthInstructions(BaseModel):
    """What a human needs to complete the device flow out of band."""

    verification_uri: str
    user_code: str
    expires_in: int
    message: str = Field(
        default=(
            "Visit the verification URL and enter the user code to sign in "
            "to Microsoft Graph."
        ),
    )

    @classmethod
    def from_device(
        cls, device: DeviceAuthorization, now: int | None = None
    ) -> AuthInstructions:
        """Build instructions from a device authorization.

        ``expires_in`` is the time remaining, not the original lifetime.
        """
        if now is None:
            now = now_ms()
        remaining = max(0, (device.expires_at - now) // 1000)
        return cls(
            verification_uri=device.verification_uri,
            user_code=device.user_code,
            expires_in=remaining,
        )


__all__ = [
    "now_ms",
    "CredentialState",
    "DeviceAuthorization",
    "TokenResponse",
    "TokenSet",
    "AuthInstructions",
]
