"""Graph MCP authentication tools package.

This package contains MCP tool implementations for OAuth authentication:

- graph_authenticate: Start (or report) the device flow
- graph_check_auth_status: Check for a valid token
"""

from graph_mcp.tools.auth.authenticate import graph_authenticate
from graph_mcp.tools.auth.status import graph_check_auth_status

__all__ = [
    "graph_authenticate",
    "graph_check_auth_status",
]
