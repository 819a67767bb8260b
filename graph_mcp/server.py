"""FastMCP server for Graph MCP.

This module builds the FastMCP server and registers its tools:

- Auth Tools (2): device flow sign-in and status
- Profile Tools (1): the signed-in user's Entra profile

The server owns one CredentialLifecycleManager. Its lifespan loads the
persisted credential state at startup and stops background polling at
shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from graph_mcp.auth.manager import CredentialLifecycleManager
from graph_mcp.config import GraphSettings
from graph_mcp.graph.client import GraphClient
from graph_mcp.tools import (
    graph_authenticate,
    graph_check_auth_status,
    graph_get_profile,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "graph-mcp"


# =============================================================================
# Lifespan Context Manager
# =============================================================================


def build_lifespan(
    manager: CredentialLifecycleManager,
) -> Callable[[FastMCP], AbstractAsyncContextManager[dict[str, Any]]]:
    """Build the server lifespan bound to a credential manager."""

    @asynccontextmanager
    async def server_lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        """Load credentials at startup and stop polling at shutdown.

        StorageCorrupted from initialize() is fatal: the server does not
        start until the operator clears the data directory.

        Args:
            server: The FastMCP server instance.

        Yields:
            Context dict holding the credential manager.
        """
        logger.info("Graph MCP server starting up...")
        manager.initialize()
        logger.info("Graph MCP server ready (auth state: %s)", manager.state.value)

        try:
            yield {"manager": manager}
        finally:
            logger.info("Graph MCP server shutting down...")
            manager.shutdown()

    return server_lifespan


# =============================================================================
# Auth Tool Wrappers
# =============================================================================


def _register_auth_tools(mcp: FastMCP, manager: CredentialLifecycleManager) -> None:
    """Register authentication tools with the FastMCP server.

    Args:
        mcp: The FastMCP server instance.
        manager: The server's credential manager.
    """

    @mcp.tool(
        name="authenticate_graph_mcp",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
        ),
    )
    async def authenticate_graph_mcp_tool() -> dict[str, Any]:
        """Start Microsoft Graph OAuth2 authentication.

        Returns a verification URL and a user code. The user visits the URL
        and enters the code; sign-in completes in the background.

        Returns:
            Pending: {status: "authentication_required", message, instructions}
            Already signed in: {status: "success", data: {state}, message}
        """
        return await graph_authenticate(manager)

    @mcp.tool(
        name="check_auth_status",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
        ),
    )
    async def check_auth_status_tool() -> dict[str, Any]:
        """Check authentication status.

        Refreshes an expiring token. When not signed in, starts sign-in and
        returns the instructions for the user.

        Returns:
            Success: {status, data: {has_valid_token, state}, message}
            Sign-in needed: {status: "authentication_required", instructions}
        """
        return await graph_check_auth_status(manager)


# =============================================================================
# Profile Tool Wrappers
# =============================================================================


def _register_profile_tools(mcp: FastMCP, client: GraphClient) -> None:
    """Register Graph profile tools with the FastMCP server."""

    @mcp.tool(
        name="get_entra_profile",
        annotations=ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
        ),
    )
    async def get_entra_profile_tool() -> dict[str, Any]:
        """Retrieve the current user's Microsoft Graph profile.

        Includes display name, job title, email, phone numbers, and office
        location.
        """
        return await graph_get_profile(client)


# =============================================================================
# Server Factory
# =============================================================================


def create_server(
    settings: GraphSettings | None = None,
    manager: CredentialLifecycleManager | None = None,
) -> FastMCP:
    """Create and configure the FastMCP server instance.

    Args:
        settings: Configuration; read from the environment if omitted.
        manager: Credential manager; built from settings if omitted.

    Returns:
        Configured FastMCP server instance.
    """
    if settings is None:
        settings = GraphSettings.from_env()
    if manager is None:
        manager = CredentialLifecycleManager(settings)

    server = FastMCP(name=SERVER_NAME, lifespan=build_lifespan(manager))

    _register_auth_tools(server, manager)
    _register_profile_tools(server, GraphClient(manager, settings))

    logger.debug("Registered 3 tools")
    return server


__all__ = [
    "create_server",
    "build_lifespan",
    "SERVER_NAME",
]
