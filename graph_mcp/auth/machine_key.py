"""Machine-bound encryption key derivation.

The key protecting stored credentials is derived from the host machine's
identity, so encrypted files copied to another machine cannot be decrypted.

Security considerations:
- The raw machine id is SHA-256 hashed before use
- PBKDF2-HMAC-SHA256 with a fixed application salt and 100,000 iterations
- The derived key lives only in process memory and is never persisted
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import subprocess
import sys
import threading
from collections.abc import Callable
from pathlib import Path

from graph_mcp.utils.encryption import MIN_KDF_ITERATIONS, derive_key
from graph_mcp.utils.errors import IdentityUnavailable

logger = logging.getLogger(__name__)

KEY_SALT = b"graph-mcp-salt"
KEY_ITERATIONS = 100_000

MACHINE_ID_ENV = "GRAPH_MCP_MACHINE_ID"
LINUX_MACHINE_ID_PATHS = (
    Path("/etc/machine-id"),
    Path("/var/lib/dbus/machine-id"),
)
_IOREG_UUID = re.compile(r'"IOPlatformUUID"\s*=\s*"([^"]+)"')


def _read_linux_machine_id() -> str | None:
    for path in LINUX_MACHINE_ID_PATHS:
        try:
            value = path.read_text().strip()
        except OSError:
            continue
        if value:
            return value
    return None


def _read_macos_machine_id() -> str | None:
    output = subprocess.run(
        ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"],
        capture_output=True,
        text=True,
        check=True,
        timeout=10,
    ).stdout
    match = _IOREG_UUID.search(output)
    return match.group(1) if match else None


def _read_windows_machine_id() -> str | None:
    import winreg

    with winreg.OpenKey(
        winreg.HKEY_LOCAL_MACHINE,
        r"SOFTWARE\Microsoft\Cryptography",
        0,
        winreg.KEY_READ | winreg.KEY_WOW64_64KEY,
    ) as key:
        value, _ = winreg.QueryValueEx(key, "MachineGuid")
    return str(value)


def read_machine_id() -> str:
    """Read a stable identifier for this machine.

    Resolution order: the GRAPH_MCP_MACHINE_ID environment variable, then
    the platform's own identifier (/etc/machine-id on Linux, IOPlatformUUID
    on macOS, MachineGuid on Windows).

    Returns:
        SHA-256 hex digest of the raw machine identifier.

    Raises:
        IdentityUnavailable: If no identifier can be read.
    """
    raw = os.getenv(MACHINE_ID_ENV, "").strip() or None

    if raw is None:
        try:
            if sys.platform.startswith("linux"):
                raw = _read_linux_machine_id()
            elif sys.platform == "darwin":
                raw = _read_macos_machine_id()
            elif sys.platform == "win32":
                raw = _read_windows_machine_id()
        except (OSError, subprocess.SubprocessError) as e:
            raise IdentityUnavailable(
                f"Failed to read machine identity: {e}",
                details={"platform": sys.platform, "error_type": type(e).__name__},
            ) from e

    if not raw:
        raise IdentityUnavailable(
            "Machine identity unavailable on this host",
            details={
                "platform": sys.platform,
                "hint": f"Set {MACHINE_ID_ENV} to a stable per-machine value",
            },
        )

    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class KeyDeriver:
    """Derives and caches the machine-bound storage key.

    The key is computed on first use and reused for the life of the
    instance. If the machine identity cannot be read nothing is cached,
    so a later call may succeed.

    Example:
        >>> deriver = KeyDeriver(identity_provider=lambda: "host-123")
        >>> deriver.derive_key() == deriver.derive_key()
        True
    """

    def __init__(
        self,
        identity_provider: Callable[[], str] = read_machine_id,
        salt: bytes = KEY_SALT,
        iterations: int = KEY_ITERATIONS,
    ) -> None:
        if iterations < MIN_KDF_ITERATIONS:
            raise ValueError(
                f"iterations must be at least {MIN_KDF_ITERATIONS}, got {iterations}"
            )
        self._identity_provider = identity_provider
        self._salt = salt
        self._iterations = iterations
        self._key: bytes | None = None
        self._lock = threading.Lock()

    def derive_key(self) -> bytes:
        """Return the 32-byte machine key, deriving it on first call.

        Raises:
            IdentityUnavailable: If the machine identity cannot be read.
        """
        with self._lock:
            if self._key is None:
                identity = self._identity_provider()
                self._key = derive_key(
                    identity.encode("utf-8"), self._salt, self._iterations
                )
                logger.debug("Derived machine-bound storage key")
            return self._key


__all__ = [
    "KeyDeriver",
    "read_machine_id",
    "KEY_SALT",
    "KEY_ITERATIONS",
    "MACHINE_ID_ENV",
]
