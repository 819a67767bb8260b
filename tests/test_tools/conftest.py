"""Fixtures for tool tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from graph_mcp.auth.manager import CredentialLifecycleManager
from graph_mcp.auth.models import AuthInstructions, CredentialState


@pytest.fixture
def instructions() -> AuthInstructions:
    """Sign-in instructions for a pending device flow."""
    return AuthInstructions(
        verification_uri="https://microsoft.com/devicelogin",
        user_code="ABCD-EFGH",
        expires_in=840,
    )


@pytest.fixture
def mock_manager() -> MagicMock:
    """Credential manager with no credentials and no flow in progress."""
    manager = MagicMock(spec=CredentialLifecycleManager)
    manager.state = CredentialState.NO_CREDENTIALS
    manager.is_polling = False
    manager.pending_instructions.return_value = None
    return manager
