"""Graph auth status tool - Check authentication state.

Asks the credential manager for a valid token, which refreshes an
expiring token and starts a device flow when no credentials are held.
"""

from __future__ import annotations

import logging
from typing import Any

from graph_mcp.auth.manager import CredentialLifecycleManager
from graph_mcp.tools.base import (
    build_auth_required_response,
    build_error_response,
    build_success_response,
)
from graph_mcp.utils.errors import AuthenticationRequired, GraphMCPError

logger = logging.getLogger(__name__)


async def graph_check_auth_status(
    manager: CredentialLifecycleManager,
) -> dict[str, Any]:
    """Check whether a valid Microsoft Graph token is available.

    Returns:
        Success: {status, data: {has_valid_token: True, state}, message}
        Sign-in needed: {status: "authentication_required", message, instructions}
        Error: {status: "error", error, error_code, has_valid_token: False}
    """
    try:
        manager.get_valid_access_token()
    except AuthenticationRequired as e:
        return build_auth_required_response(e.instructions)
    except GraphMCPError as e:
        logger.warning("Authentication check failed: %s", e)
        return build_error_response(
            error=e.message,
            error_code=type(e).__name__,
            details={"has_valid_token": False},
        )

    return build_success_response(
        data={"has_valid_token": True, "state": manager.state.value},
        message="Authentication is valid and ready to use.",
    )
