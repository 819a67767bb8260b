"""Graph MCP tools package.

This package contains the MCP tool implementations. Each tool takes the
server's credential manager (or a Graph client built on it) explicitly.

- Auth Tools: device flow sign-in and status
- Profile Tool: the signed-in user's Entra profile
"""

from graph_mcp.tools.auth import graph_authenticate, graph_check_auth_status
from graph_mcp.tools.base import (
    build_auth_required_response,
    build_error_response,
    build_success_response,
)
from graph_mcp.tools.profile import graph_get_profile

__all__ = [
    # Auth tools
    "graph_authenticate",
    "graph_check_auth_status",
    # Profile tools
    "graph_get_profile",
    # Base utilities
    "build_success_response",
    "build_error_response",
    "build_auth_required_response",
]
