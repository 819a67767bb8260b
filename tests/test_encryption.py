"""Tests for encryption utilities."""

import os

import pytest

from graph_mcp.utils.encryption import (
    NONCE_SIZE_BYTES,
    TAG_SIZE_BYTES,
    decrypt_data,
    derive_key,
    encrypt_data,
)
from graph_mcp.utils.errors import DecryptionFailed, ValidationError


class TestDeriveKey:
    """Tests for derive_key function."""

    def test_derives_32_byte_key(self) -> None:
        """Key should be 32 bytes (256 bits)."""
        key = derive_key(b"machine", b"salt", 100_000)
        assert len(key) == 32

    def test_is_deterministic(self) -> None:
        """Same inputs should always produce the same key."""
        assert derive_key(b"machine", b"salt", 100_000) == derive_key(
            b"machine", b"salt", 100_000
        )

    def test_salt_changes_key(self) -> None:
        """Different salts should produce different keys."""
        assert derive_key(b"machine", b"salt-a", 100_000) != derive_key(
            b"machine", b"salt-b", 100_000
        )

    def test_rejects_low_iteration_count(self) -> None:
        """Should raise ValidationError below 100,000 iterations."""
        with pytest.raises(ValidationError) as exc_info:
            derive_key(b"machine", b"salt", 1000)
        assert exc_info.value.field == "iterations"


class TestEncryptDecrypt:
    """Tests for encrypt_data and decrypt_data functions."""

    @pytest.fixture
    def key(self) -> bytes:
        """Generate a test encryption key."""
        return os.urandom(32)

    def test_encrypt_returns_nonce_ciphertext_and_tag(self, key: bytes) -> None:
        """Encrypted result should separate nonce, ciphertext and tag."""
        plaintext = b"Hello, World!"
        result = encrypt_data(plaintext, key)

        assert len(result["nonce"]) == NONCE_SIZE_BYTES
        assert len(result["tag"]) == TAG_SIZE_BYTES
        assert len(result["ciphertext"]) == len(plaintext)

    def test_decrypt_recovers_plaintext(self, key: bytes) -> None:
        """Decryption should recover original plaintext."""
        plaintext = b"Secret message for testing"
        encrypted = encrypt_data(plaintext, key)

        decrypted = decrypt_data(
            encrypted["nonce"], encrypted["ciphertext"], encrypted["tag"], key
        )
        assert decrypted == plaintext

    def test_roundtrip_with_empty_data(self, key: bytes) -> None:
        """Should handle empty plaintext."""
        encrypted = encrypt_data(b"", key)
        assert encrypted["ciphertext"] == b""
        assert (
            decrypt_data(encrypted["nonce"], encrypted["ciphertext"], encrypted["tag"], key)
            == b""
        )

    def test_unique_nonce_per_encryption(self, key: bytes) -> None:
        """Each encryption should use a unique nonce."""
        nonces = [encrypt_data(b"Same message", key)["nonce"] for _ in range(10)]
        assert len(set(nonces)) == 10

    def test_decrypt_with_wrong_key_fails(self, key: bytes) -> None:
        """Decryption with wrong key should fail."""
        encrypted = encrypt_data(b"Secret", key)

        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt_data(
                encrypted["nonce"], encrypted["ciphertext"], encrypted["tag"], os.urandom(32)
            )
        assert "decrypt" in str(exc_info.value).lower()

    def test_decrypt_with_tampered_ciphertext_fails(self, key: bytes) -> None:
        """Decryption with tampered ciphertext should fail (auth tag check)."""
        encrypted = encrypt_data(b"Secret", key)

        tampered = bytearray(encrypted["ciphertext"])
        tampered[0] ^= 0x01

        with pytest.raises(DecryptionFailed):
            decrypt_data(encrypted["nonce"], bytes(tampered), encrypted["tag"], key)

    def test_decrypt_with_tampered_tag_fails(self, key: bytes) -> None:
        """Decryption with a flipped tag bit should fail."""
        encrypted = encrypt_data(b"Secret", key)

        tampered = bytearray(encrypted["tag"])
        tampered[-1] ^= 0x80

        with pytest.raises(DecryptionFailed):
            decrypt_data(encrypted["nonce"], encrypted["ciphertext"], bytes(tampered), key)

    def test_decrypt_with_short_tag_fails(self, key: bytes) -> None:
        """A truncated tag should be rejected before decryption."""
        encrypted = encrypt_data(b"Secret", key)

        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt_data(encrypted["nonce"], encrypted["ciphertext"], encrypted["tag"][:8], key)
        assert "16" in str(exc_info.value)


class TestEncryptionValidation:
    """Tests for input validation in encryption functions."""

    def test_encrypt_with_invalid_key_length(self) -> None:
        """Should raise ValidationError for invalid key length."""
        with pytest.raises(ValidationError) as exc_info:
            encrypt_data(b"data", b"short")
        assert "32" in str(exc_info.value)

    def test_decrypt_with_invalid_key_length(self) -> None:
        """Should raise ValidationError for invalid key length."""
        with pytest.raises(ValidationError) as exc_info:
            decrypt_data(b"n" * 12, b"ciphertext", b"t" * 16, b"short")
        assert "32" in str(exc_info.value)

    def test_decrypt_with_invalid_nonce_length(self) -> None:
        """Should raise DecryptionFailed for a wrongly sized nonce."""
        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt_data(b"short", b"ciphertext", b"t" * 16, os.urandom(32))
        assert "12" in str(exc_info.value)
