"""Tests for the Entra profile tool."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from graph_mcp.auth.models import AuthInstructions
from graph_mcp.graph.client import GraphClient
from graph_mcp.tools.profile import graph_get_profile
from graph_mcp.utils.errors import AuthenticationRequired, GraphAPIError


@pytest.fixture
def mock_client() -> MagicMock:
    return MagicMock(spec=GraphClient)


class TestGraphGetProfile:
    """Tests for graph_get_profile tool."""

    @pytest.mark.asyncio
    async def test_returns_profile(self, mock_client: MagicMock) -> None:
        profile = {"displayName": "Adele Vance", "jobTitle": "Retail Manager"}
        mock_client.get_profile.return_value = profile

        result = await graph_get_profile(mock_client)

        assert result == {"status": "success", "data": profile}

    @pytest.mark.asyncio
    async def test_sign_in_needed(
        self, mock_client: MagicMock, instructions: AuthInstructions
    ) -> None:
        mock_client.get_profile.side_effect = AuthenticationRequired(instructions)

        result = await graph_get_profile(mock_client)

        assert result["status"] == "authentication_required"
        assert result["instructions"]["user_code"] == "ABCD-EFGH"

    @pytest.mark.asyncio
    async def test_graph_error(self, mock_client: MagicMock) -> None:
        mock_client.get_profile.side_effect = GraphAPIError(
            "Graph API error: Insufficient privileges",
            status_code=403,
            error_code="Authorization_RequestDenied",
        )

        result = await graph_get_profile(mock_client)

        assert result["status"] == "error"
        assert result["error_code"] == "GraphAPIError"
        assert "Insufficient privileges" in result["error"]
