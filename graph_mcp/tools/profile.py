"""Entra profile tool - fetch the signed-in user's Graph profile."""

from __future__ import annotations

import logging
from typing import Any

from graph_mcp.graph.client import GraphClient
from graph_mcp.tools.base import (
    build_auth_required_response,
    build_success_response,
    error_response_from,
)
from graph_mcp.utils.errors import AuthenticationRequired, GraphMCPError

logger = logging.getLogger(__name__)


async def graph_get_profile(client: GraphClient) -> dict[str, Any]:
    """Retrieve display name, job title, mail, phones, and office location.

    Returns:
        Success: {status, data: <profile>}
        Sign-in needed: {status: "authentication_required", message, instructions}
        Error: {status: "error", error, error_code}
    """
    try:
        profile = client.get_profile()
    except AuthenticationRequired as e:
        return build_auth_required_response(e.instructions)
    except GraphMCPError as e:
        logger.error("Get profile failed: %s", e)
        return error_response_from(e)

    return build_success_response(data=profile)
