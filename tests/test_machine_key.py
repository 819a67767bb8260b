"""Tests for machine-bound key derivation."""

from __future__ import annotations

import hashlib
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from graph_mcp.auth import machine_key
from graph_mcp.auth.machine_key import MACHINE_ID_ENV, KeyDeriver, read_machine_id
from graph_mcp.utils.errors import IdentityUnavailable


class TestKeyDeriver:
    """Tests for KeyDeriver."""

    def test_returns_32_byte_key(self) -> None:
        """Derived key should match the AES-256 key size."""
        deriver = KeyDeriver(identity_provider=lambda: "host-a")
        assert len(deriver.derive_key()) == 32

    def test_repeated_calls_return_identical_key(self) -> None:
        """Two calls in one process should return bit-identical keys."""
        provider = MagicMock(return_value="host-a")
        deriver = KeyDeriver(identity_provider=provider)

        first = deriver.derive_key()
        second = deriver.derive_key()

        assert first == second
        provider.assert_called_once()

    def test_same_identity_same_key_across_instances(self) -> None:
        """Derivation is deterministic for a given machine identity."""
        assert (
            KeyDeriver(identity_provider=lambda: "host-a").derive_key()
            == KeyDeriver(identity_provider=lambda: "host-a").derive_key()
        )

    def test_different_identities_give_different_keys(self) -> None:
        """Different machines should derive different keys."""
        assert (
            KeyDeriver(identity_provider=lambda: "host-a").derive_key()
            != KeyDeriver(identity_provider=lambda: "host-b").derive_key()
        )

    def test_identity_failure_is_not_cached(self) -> None:
        """A failed identity read should allow a retry on the next call."""
        provider = MagicMock(
            side_effect=[IdentityUnavailable("no machine id"), "host-a"]
        )
        deriver = KeyDeriver(identity_provider=provider)

        with pytest.raises(IdentityUnavailable):
            deriver.derive_key()

        assert len(deriver.derive_key()) == 32
        assert provider.call_count == 2

    def test_rejects_low_iteration_count(self) -> None:
        """Construction should refuse fewer than 100,000 iterations."""
        with pytest.raises(ValueError):
            KeyDeriver(identity_provider=lambda: "host-a", iterations=10_000)


class TestReadMachineId:
    """Tests for read_machine_id."""

    def test_env_override_is_hashed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """GRAPH_MCP_MACHINE_ID should be used and SHA-256 hashed."""
        monkeypatch.setenv(MACHINE_ID_ENV, "container-42")

        assert read_machine_id() == hashlib.sha256(b"container-42").hexdigest()

    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="Linux only")
    def test_reads_first_available_linux_file(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Should fall through missing files to the first readable one."""
        monkeypatch.delenv(MACHINE_ID_ENV, raising=False)
        present = tmp_path / "dbus-machine-id"
        present.write_text("abc123\n")
        monkeypatch.setattr(
            machine_key,
            "LINUX_MACHINE_ID_PATHS",
            (tmp_path / "missing", present),
        )

        assert read_machine_id() == hashlib.sha256(b"abc123").hexdigest()

    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="Linux only")
    def test_raises_when_no_identity(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Should raise IdentityUnavailable when nothing can be read."""
        monkeypatch.delenv(MACHINE_ID_ENV, raising=False)
        monkeypatch.setattr(
            machine_key, "LINUX_MACHINE_ID_PATHS", (tmp_path / "missing",)
        )

        with pytest.raises(IdentityUnavailable) as exc_info:
            read_machine_id()
        assert MACHINE_ID_ENV in str(exc_info.value)
