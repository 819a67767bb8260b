"""Encrypted file-based storage for credential state.

This module provides the secret store used to persist the token set and
the pending device authorization. Payloads are serialized as canonical
JSON, encrypted with AES-256-GCM under the machine-bound key, and written
to disk as a JSON object of hex strings.

On-disk format:
    {"ciphertext": "<hex>", "nonce": "<hex>", "tag": "<hex>"}

Security considerations:
- A fresh random nonce is generated for every write
- Files are written to a temp file, restricted to 0600, then renamed
- A missing file means "never configured"; anything unreadable is corrupt
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from graph_mcp.auth.machine_key import KeyDeriver
from graph_mcp.utils.encryption import decrypt_data, encrypt_data
from graph_mcp.utils.errors import (
    CredentialStorageError,
    DecryptionFailed,
    StorageCorrupted,
)

logger = logging.getLogger(__name__)

BLOB_FIELDS = ("ciphertext", "nonce", "tag")


class EncryptedBlob(BaseModel):
    """Ciphertext, nonce, and authentication tag, handled as one unit."""

    ciphertext: bytes
    nonce: bytes
    auth_tag: bytes

    def to_json_dict(self) -> dict[str, str]:
        """Hex-encode the blob for storage."""
        return {
            "ciphertext": self.ciphertext.hex(),
            "nonce": self.nonce.hex(),
            "tag": self.auth_tag.hex(),
        }

    @classmethod
    def from_json_dict(cls, data: object) -> EncryptedBlob:
        """Decode a stored blob.

        Raises:
            DecryptionFailed: If the data is not an object, a field is
                missing, or a field is not valid hex.
        """
        if not isinstance(data, dict):
            raise DecryptionFailed(
                "Invalid encrypted blob - expected a JSON object",
                details={"actual_type": type(data).__name__},
            )

        missing = [name for name in BLOB_FIELDS if not isinstance(data.get(name), str)]
        if missing:
            raise DecryptionFailed(
                "Invalid encrypted blob - missing required field",
                details={"missing_fields": missing},
            )

        try:
            return cls(
                ciphertext=bytes.fromhex(data["ciphertext"]),
                nonce=bytes.fromhex(data["nonce"]),
                auth_tag=bytes.fromhex(data["tag"]),
            )
        except ValueError as e:
            raise DecryptionFailed(
                "Invalid encrypted blob - invalid hex encoding",
                details={"error_message": str(e)},
            ) from e


class SecretStore:
    """Authenticated encryption of structured payloads to and from files.

    Holds no state between calls beyond its key deriver: every save or load
    opens, reads or writes, and closes the file.

    Example:
        >>> store = SecretStore(KeyDeriver())
        >>> store.save(Path("/tmp/tokens.enc"), {"access_token": "eyJ0..."})
        >>> store.load(Path("/tmp/tokens.enc"))
        {'access_token': 'eyJ0...'}
    """

    def __init__(self, key_deriver: KeyDeriver) -> None:
        self._key_deriver = key_deriver

    def encrypt(self, plaintext: Any) -> EncryptedBlob:
        """Serialize and encrypt a JSON-compatible payload.

        Raises:
            CredentialStorageError: If the payload is not JSON serializable.
            IdentityUnavailable: If the machine key cannot be derived.
        """
        try:
            serialized = json.dumps(
                plaintext, sort_keys=True, separators=(",", ":")
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise CredentialStorageError(
                "Payload is not JSON serializable",
                details={"error_type": type(e).__name__, "error_message": str(e)},
            ) from e

        encrypted = encrypt_data(serialized, self._key_deriver.derive_key())
        return EncryptedBlob(
            ciphertext=encrypted["ciphertext"],
            nonce=encrypted["nonce"],
            auth_tag=encrypted["tag"],
        )

    def decrypt(self, blob: EncryptedBlob) -> Any:
        """Verify and decrypt a blob back into its payload.

        Raises:
            DecryptionFailed: If the tag does not verify or the plaintext is
                not valid JSON.
            IdentityUnavailable: If the machine key cannot be derived.
        """
        plaintext = decrypt_data(
            blob.nonce, blob.ciphertext, blob.auth_tag, self._key_deriver.derive_key()
        )

        try:
            return json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecryptionFailed(
                "Decrypted data is not valid JSON",
                details={"error_message": str(e)},
            ) from e

    def save(self, path: Path, plaintext: Any) -> None:
        """Encrypt a payload and atomically write it to ``path``.

        The blob is written to a temp file in the same directory, restricted
        to owner read/write, then renamed over ``path``. A failed write never
        leaves a partial file at ``path``.

        Raises:
            CredentialStorageError: If encryption or the write fails.
        """
        blob = self.encrypt(plaintext)
        content = json.dumps(blob.to_json_dict(), indent=2)

        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, path)
            tmp_name = None
            logger.debug("Saved encrypted data to %s", path)

        except OSError as e:
            logger.error("Failed to save encrypted data to %s: %s", path, e)
            raise CredentialStorageError(
                f"Failed to save encrypted data: {e}",
                details={"path": str(path), "error_type": type(e).__name__},
            ) from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    def load(self, path: Path) -> Any | None:
        """Load and decrypt the payload stored at ``path``.

        Returns:
            The decrypted payload, or None if the file does not exist.

        Raises:
            StorageCorrupted: If the file exists but cannot be read, parsed,
                or decrypted.
            IdentityUnavailable: If the machine key cannot be derived.
        """
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No encrypted data at %s", path)
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read %s: %s", path, e)
            raise StorageCorrupted(
                f"Failed to read encrypted data: {e}",
                details={"path": str(path), "error_type": type(e).__name__},
            ) from e

        try:
            blob = EncryptedBlob.from_json_dict(json.loads(content))
            return self.decrypt(blob)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            raise StorageCorrupted(
                "Encrypted file contains invalid JSON",
                details={"path": str(path), "error": str(e)},
            ) from e
        except DecryptionFailed as e:
            logger.error("Failed to decrypt %s: %s", path, e.message)
            raise StorageCorrupted(
                f"Failed to decrypt stored data: {e.message}",
                details={"path": str(path), **e.details},
            ) from e

    def delete(self, path: Path) -> bool:
        """Delete the file at ``path``.

        Returns:
            True if a file was deleted, False if none existed.

        Raises:
            CredentialStorageError: If the file exists but cannot be removed.
        """
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Failed to delete %s: %s", path, e)
            raise CredentialStorageError(
                f"Failed to delete encrypted data: {e}",
                details={"path": str(path), "error_type": type(e).__name__},
            ) from e

        logger.debug("Deleted encrypted data at %s", path)
        return True


__all__ = [
    "EncryptedBlob",
    "SecretStore",
]
