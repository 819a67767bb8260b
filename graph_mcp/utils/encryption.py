"""AES-256-GCM encryption utilities for secure credential storage.

This module provides the cryptographic primitives behind the secret store:
AES-256-GCM authenticated encryption with the authentication tag kept
separate from the ciphertext, and PBKDF2-HMAC-SHA256 key derivation.

Security considerations:
- Keys must be 256 bits (32 bytes) for AES-256
- Nonces are 96 bits (12 bytes) and must be unique per encryption
- Never reuse a nonce with the same key
- A failed tag check never yields plaintext
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from graph_mcp.utils.errors import DecryptionFailed, ValidationError

# Constants
KEY_SIZE_BITS = 256
KEY_SIZE_BYTES = KEY_SIZE_BITS // 8  # 32 bytes
NONCE_SIZE_BYTES = 12  # 96 bits, recommended for GCM
TAG_SIZE_BYTES = 16  # 128-bit GCM tag
MIN_KDF_ITERATIONS = 100_000


def derive_key(secret: bytes, salt: bytes, iterations: int) -> bytes:
    """Derive a 256-bit key with PBKDF2-HMAC-SHA256.

    Args:
        secret: Input keying material (e.g. a machine identity).
        salt: Application-specific salt.
        iterations: PBKDF2 iteration count, at least MIN_KDF_ITERATIONS.

    Returns:
        A 32-byte key suitable for AES-256-GCM.

    Raises:
        ValidationError: If the iteration count is below the minimum.
    """
    if iterations < MIN_KDF_ITERATIONS:
        raise ValidationError(
            f"PBKDF2 iteration count must be at least {MIN_KDF_ITERATIONS}",
            field="iterations",
            details={"iterations": iterations},
        )

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE_BYTES,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret)


def encrypt_data(plaintext: bytes, key: bytes) -> dict[str, bytes]:
    """Encrypt data using AES-256-GCM authenticated encryption.

    Generates a unique 12-byte nonce for each encryption operation. The
    nonce and tag must be stored alongside the ciphertext for decryption.

    Args:
        plaintext: The data to encrypt.
        key: A 32-byte (256-bit) encryption key.

    Returns:
        A dictionary containing:
            - "nonce": The 12-byte nonce
            - "ciphertext": The encrypted data without the tag
            - "tag": The 16-byte authentication tag

    Raises:
        ValidationError: If the key is not exactly 32 bytes.

    Example:
        >>> key = os.urandom(32)
        >>> encrypted = encrypt_data(b"secret token data", key)
        >>> sorted(encrypted)
        ['ciphertext', 'nonce', 'tag']
    """
    _validate_key(key)

    nonce = os.urandom(NONCE_SIZE_BYTES)
    sealed = AESGCM(key).encrypt(nonce, plaintext, None)
    return {
        "nonce": nonce,
        "ciphertext": sealed[:-TAG_SIZE_BYTES],
        "tag": sealed[-TAG_SIZE_BYTES:],
    }


def decrypt_data(nonce: bytes, ciphertext: bytes, tag: bytes, key: bytes) -> bytes:
    """Decrypt data using AES-256-GCM authenticated decryption.

    Decrypts and verifies the authentication tag in a single operation.
    If the ciphertext or tag has been tampered with, decryption fails
    and nothing is returned.

    Args:
        nonce: The 12-byte nonce used during encryption.
        ciphertext: The encrypted data without the tag.
        tag: The 16-byte authentication tag.
        key: The 32-byte (256-bit) encryption key used for encryption.

    Returns:
        The decrypted plaintext data.

    Raises:
        ValidationError: If the key has invalid length.
        DecryptionFailed: If the nonce or tag is malformed, or the tag does
            not verify (wrong key, corrupted data, or tampering).
    """
    _validate_key(key)

    if len(nonce) != NONCE_SIZE_BYTES:
        raise DecryptionFailed(
            f"Invalid nonce length: expected {NONCE_SIZE_BYTES} bytes, got {len(nonce)}",
            details={"expected_length": NONCE_SIZE_BYTES, "actual_length": len(nonce)},
        )
    if len(tag) != TAG_SIZE_BYTES:
        raise DecryptionFailed(
            f"Invalid tag length: expected {TAG_SIZE_BYTES} bytes, got {len(tag)}",
            details={"expected_length": TAG_SIZE_BYTES, "actual_length": len(tag)},
        )

    try:
        return AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        raise DecryptionFailed(
            "Failed to decrypt data - invalid key or corrupted ciphertext",
            details={"error_type": type(e).__name__},
        ) from e


def _validate_key(key: bytes) -> None:
    """Validate that the key is the correct length for AES-256.

    Raises:
        ValidationError: If the key is not exactly 32 bytes.
    """
    if len(key) != KEY_SIZE_BYTES:
        raise ValidationError(
            f"Invalid key length: expected {KEY_SIZE_BYTES} bytes, got {len(key)}",
            field="key",
            details={"expected_length": KEY_SIZE_BYTES, "actual_length": len(key)},
        )


__all__ = [
    "KEY_SIZE_BYTES",
    "NONCE_SIZE_BYTES",
    "TAG_SIZE_BYTES",
    "MIN_KDF_ITERATIONS",
    "derive_key",
    "encrypt_data",
    "decrypt_data",
]
