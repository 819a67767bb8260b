"""Graph authenticate tool - start the device flow.

Flow:
1. User calls authenticate_graph_mcp()
   → Returns verification URL + user code
   → Server polls for completion in the background
2. User visits the URL, enters the code, and approves
   → Tokens are stored encrypted; other tools start working
"""

from __future__ import annotations

import logging
from typing import Any

from graph_mcp.auth.manager import CredentialLifecycleManager
from graph_mcp.auth.models import CredentialState
from graph_mcp.tools.base import (
    build_auth_required_response,
    build_success_response,
    error_response_from,
)
from graph_mcp.utils.errors import AuthenticationRequired, GraphMCPError

logger = logging.getLogger(__name__)


async def graph_authenticate(manager: CredentialLifecycleManager) -> dict[str, Any]:
    """Sign in to Microsoft Graph using the device flow.

    Returns the pending flow's instructions rather than requesting a new
    code while a sign-in is already in progress.

    Args:
        manager: The credential manager owned by the server.

    Returns:
        Pending: {status: "authentication_required", message, instructions}
        Already signed in: {status: "success", data: {state}, message}
        Error: {status: "error", error, error_code}
    """
    state = manager.state

    if state in (CredentialState.AUTHENTICATED, CredentialState.EXPIRING):
        return build_success_response(
            data={"state": state.value},
            message="Already authenticated. You can use the other tools.",
        )

    if state == CredentialState.AWAITING_AUTHORIZATION and manager.is_polling:
        instructions = manager.pending_instructions()
        if instructions is not None:
            return build_auth_required_response(instructions)

    try:
        manager.start_device_flow()
    except AuthenticationRequired as e:
        logger.info("Returning device sign-in instructions")
        return build_auth_required_response(e.instructions)
    except GraphMCPError as e:
        logger.error("Authentication failed: %s", e)
        return error_response_from(e)
