"""Authenticated Microsoft Graph API client."""

from __future__ import annotations

import logging
from typing import Any

import requests

from graph_mcp.auth.manager import CredentialLifecycleManager
from graph_mcp.config import GraphSettings
from graph_mcp.utils.errors import GraphAPIError

logger = logging.getLogger(__name__)

PROFILE_FIELDS = [
    "displayName",
    "jobTitle",
    "mail",
    "mobilePhone",
    "officeLocation",
    "businessPhones",
    "id",
]


class GraphClient:
    """Issues Graph API requests with a bearer token from the credential manager.

    A 401 response triggers one token refresh and one retry. Errors from
    the credential manager (AuthenticationRequired, ReauthenticationRequired)
    propagate unchanged so callers can relay sign-in instructions.
    """

    def __init__(
        self, manager: CredentialLifecycleManager, settings: GraphSettings
    ) -> None:
        self._manager = manager
        self._settings = settings

    def get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET a Graph resource.

        Args:
            path: Resource path relative to the API base (e.g. "/me").
            params: Optional OData query parameters.

        Returns:
            Decoded JSON response body.

        Raises:
            GraphAPIError: On a non-2xx response or transport failure.
            AuthenticationRequired: If no credentials are held.
            ReauthenticationRequired: If the retry's refresh fails.
        """
        url = f"{self._settings.graph_api_base}{path}"

        token = self._manager.get_valid_access_token()
        response = self._send(url, token, params)

        if response.status_code == 401:
            logger.warning("Graph API rejected access token, refreshing once")
            token = self._manager.refresh_access_token()
            response = self._send(url, token, params)

        if not response.ok:
            raise _api_error(response)

        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise GraphAPIError(
                "Graph API returned invalid JSON",
                status_code=response.status_code,
            ) from e
        return data

    def get_profile(self) -> dict[str, Any]:
        """Fetch the signed-in user's profile."""
        return self.get("/me", params={"$select": ",".join(PROFILE_FIELDS)})

    def _send(
        self, url: str, token: str, params: dict[str, str] | None
    ) -> requests.Response:
        try:
            return requests.get(
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
                params=params,
                timeout=self._settings.http_timeout,
            )
        except requests.RequestException as e:
            logger.error("Network error calling Graph API: %s", e)
            raise GraphAPIError(
                f"Network error calling Graph API: {e}",
                details={"error_type": type(e).__name__},
            ) from e


def _api_error(response: requests.Response) -> GraphAPIError:
    """Build a GraphAPIError from a Graph error response."""
    error_code = None
    message = response.reason or "Graph API request failed"
    try:
        error = response.json().get("error", {})
        error_code = error.get("code")
        message = error.get("message") or message
    except (ValueError, AttributeError):
        pass

    return GraphAPIError(
        f"Graph API error: {message}",
        status_code=response.status_code,
        error_code=error_code,
    )


__all__ = [
    "GraphClient",
    "PROFILE_FIELDS",
]
