"""Microsoft identity platform OAuth 2.0 client for the device flow.

This module wraps the two authorization-server endpoints the credential
manager talks to:

1. Device code endpoint: issues a device code and a user code that the
   user enters at the verification URL.

2. Token endpoint: exchanges a device code (once the user has approved)
   or a refresh token for an access token.

Each call is a single form-encoded POST. Polling, persistence, and state
are the credential manager's job; this client only translates HTTP
responses into models or exceptions.
"""

from __future__ import annotations

import logging

import requests
from pydantic import ValidationError as PydanticValidationError

from graph_mcp.auth.models import DeviceAuthorization, TokenResponse, now_ms
from graph_mcp.config import GraphSettings
from graph_mcp.utils.errors import AuthenticationError, OAuthServerError

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"
REFRESH_TOKEN_GRANT = "refresh_token"


class DeviceFlowClient:
    """HTTP client for the device code and token endpoints.

    Attributes:
        _settings: Tenant, client, scope, and timeout configuration.

    Example:
        >>> client = DeviceFlowClient(GraphSettings.from_env())
        >>> device = client.request_device_code()
        >>> print(f"Visit {device.verification_uri}, enter {device.user_code}")
    """

    def __init__(self, settings: GraphSettings) -> None:
        self._settings = settings

    def _require_configured(self) -> None:
        if not self._settings.is_configured:
            raise AuthenticationError(
                "OAuth not configured",
                details={"hint": "Set TENANT_ID and CLIENT_ID environment variables"},
            )

    def request_device_code(self, issued_at: int | None = None) -> DeviceAuthorization:
        """Request a new device code.

        Args:
            issued_at: Epoch milliseconds to stamp the code with (defaults
                to now).

        Returns:
            The device authorization issued by the server.

        Raises:
            AuthenticationError: If OAuth is not configured, the request
                fails, or the response is malformed.
        """
        self._require_configured()

        try:
            response = requests.post(
                self._settings.device_code_url,
                data={
                    "client_id": self._settings.client_id,
                    "scope": self._settings.scope_string,
                },
                timeout=self._settings.http_timeout,
            )
        except requests.RequestException as e:
            logger.error("Network error requesting device code: %s", e)
            raise AuthenticationError(
                f"Network error requesting device code: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        if response.status_code != 200:
            raise _server_error(response, "Device code request failed")

        try:
            payload = response.json()
            device = DeviceAuthorization(
                device_code=payload["device_code"],
                user_code=payload["user_code"],
                verification_uri=payload["verification_uri"],
                expires_in=int(payload["expires_in"]),
                interval=int(
                    payload.get("interval") or self._settings.poll_interval_seconds
                ),
                issued_at=now_ms() if issued_at is None else issued_at,
            )
        except (ValueError, KeyError, TypeError, PydanticValidationError) as e:
            raise AuthenticationError(
                "Malformed device code response",
                details={"error_type": type(e).__name__, "error_message": str(e)},
            ) from e

        logger.info(
            "Device code issued. Visit %s and enter code: %s",
            device.verification_uri,
            device.user_code,
        )
        return device

    def exchange_device_code(self, device_code: str) -> TokenResponse:
        """Poll the token endpoint once with a device code.

        Returns:
            The token response once the user has approved.

        Raises:
            OAuthServerError: If the server returns an error payload
                (including "authorization_pending" and "slow_down").
            requests.RequestException: On transport failure; left to the
                caller's retry budget.
        """
        self._require_configured()
        return self._token_request(
            {
                "client_id": self._settings.client_id,
                "device_code": device_code,
                "grant_type": DEVICE_CODE_GRANT,
            }
        )

    def refresh(self, refresh_token: str) -> TokenResponse:
        """Exchange a refresh token for a new access token.

        Raises:
            OAuthServerError: If the server rejects the refresh token.
            requests.RequestException: On transport failure.
        """
        self._require_configured()
        return self._token_request(
            {
                "client_id": self._settings.client_id,
                "refresh_token": refresh_token,
                "grant_type": REFRESH_TOKEN_GRANT,
                "scope": self._settings.scope_string,
            }
        )

    def _token_request(self, form: dict[str, str]) -> TokenResponse:
        response = requests.post(
            self._settings.token_url,
            data=form,
            timeout=self._settings.http_timeout,
        )

        if response.status_code != 200:
            raise _server_error(response, "Token request failed")

        try:
            return TokenResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise OAuthServerError(
                "Malformed token response",
                status_code=response.status_code,
                details={"error_type": type(e).__name__},
            ) from e


def _server_error(response: requests.Response, context: str) -> OAuthServerError:
    """Build an OAuthServerError from an error response."""
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    error = payload.get("error")
    description = payload.get("error_description")
    return OAuthServerError(
        f"{context}: {description or error or response.status_code}",
        error=error,
        status_code=response.status_code,
        details={"error": error, "status_code": response.status_code},
    )


__all__ = [
    "DeviceFlowClient",
    "DEVICE_CODE_GRANT",
    "REFRESH_TOKEN_GRANT",
]
