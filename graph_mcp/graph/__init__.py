"""Microsoft Graph API access built on the credential manager."""

from graph_mcp.graph.client import PROFILE_FIELDS, GraphClient

__all__ = [
    "GraphClient",
    "PROFILE_FIELDS",
]
