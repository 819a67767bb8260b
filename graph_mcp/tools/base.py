"""Base utilities for Graph MCP tools.

This module provides the standardized response envelope shared by all
Graph MCP tools.
"""

from __future__ import annotations

import logging
from typing import Any

from graph_mcp.auth.models import AuthInstructions
from graph_mcp.utils.errors import GraphMCPError

logger = logging.getLogger(__name__)


# =============================================================================
# Standard Response Keys
# =============================================================================


class ResponseKeys:
    """Standard keys for tool responses."""

    STATUS = "status"
    DATA = "data"
    MESSAGE = "message"
    ERROR = "error"
    ERROR_CODE = "error_code"
    INSTRUCTIONS = "instructions"


# =============================================================================
# Response Builders
# =============================================================================


def build_success_response(
    data: Any,
    message: str | None = None,
) -> dict[str, Any]:
    """Build standardized success response.

    Args:
        data: Tool-specific payload.
        message: Optional human-readable message.

    Returns:
        Standardized success response dict.
    """
    response: dict[str, Any] = {
        ResponseKeys.STATUS: "success",
        ResponseKeys.DATA: data,
    }
    if message:
        response[ResponseKeys.MESSAGE] = message
    return response


def build_error_response(
    error: str,
    error_code: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build standardized error response.

    Args:
        error: Human-readable error message.
        error_code: Optional error code for programmatic handling.
        details: Optional additional error details.

    Returns:
        Standardized error response dict.
    """
    response: dict[str, Any] = {
        ResponseKeys.STATUS: "error",
        ResponseKeys.ERROR: error,
    }
    if error_code:
        response[ResponseKeys.ERROR_CODE] = error_code
    if details:
        response.update(details)
    return response


def build_auth_required_response(instructions: AuthInstructions) -> dict[str, Any]:
    """Build the guidance response for a pending device sign-in.

    This is not an error: the user has to visit the verification URL and
    enter the code, after which the tool can be called again.
    """
    return {
        ResponseKeys.STATUS: "authentication_required",
        ResponseKeys.MESSAGE: instructions.message,
        ResponseKeys.INSTRUCTIONS: {
            "verification_uri": instructions.verification_uri,
            "user_code": instructions.user_code,
            "expires_in": instructions.expires_in,
        },
    }


def error_response_from(error: GraphMCPError) -> dict[str, Any]:
    """Build an error response named after the exception class."""
    return build_error_response(
        error=error.message,
        error_code=type(error).__name__,
    )


__all__ = [
    "ResponseKeys",
    "build_success_response",
    "build_error_response",
    "build_auth_required_response",
    "error_response_from",
]
