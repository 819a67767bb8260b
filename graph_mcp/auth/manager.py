"""Credential lifecycle manager for Microsoft Graph access.

This module owns the in-memory token set and pending device authorization,
drives the OAuth 2.0 device-authorization flow, and vends access tokens
on demand, refreshing them before they expire.

Lifecycle:
    uninitialized -> no_credentials -> awaiting_authorization
    -> authenticated -> (expiring) -> authenticated | no_credentials

Token requests never block on the user. When no credentials are held, a
device flow is started, a background thread begins polling the token
endpoint, and the caller immediately receives AuthenticationRequired with
the sign-in instructions to relay.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, NoReturn

import requests
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from graph_mcp.auth.machine_key import KeyDeriver
from graph_mcp.auth.models import (
    AuthInstructions,
    CredentialState,
    DeviceAuthorization,
    TokenSet,
    now_ms,
)
from graph_mcp.auth.oauth import DeviceFlowClient
from graph_mcp.auth.storage import SecretStore
from graph_mcp.config import GraphSettings
from graph_mcp.utils.errors import (
    AuthenticationError,
    AuthenticationRequired,
    AuthorizationDeclined,
    AuthorizationExpired,
    AuthorizationTimeout,
    CredentialStorageError,
    GraphMCPError,
    OAuthServerError,
    ReauthenticationRequired,
    StorageCorrupted,
)

logger = logging.getLogger(__name__)

SLOW_DOWN_INCREMENT_SECONDS = 5
DECLINED_ERRORS = {"authorization_declined", "access_denied"}


class CredentialLifecycleManager:
    """Owns the token set and device flow for a single signed-in user.

    All reads and writes of the token set and device authorization happen
    under one lock, so a refresh and a poll success never interleave their
    writes. Network calls are made outside that lock. Disk is written only
    after the in-memory state is complete. Starting a device flow is
    serialized by a separate lock, so at most one flow is requested at a
    time and concurrent callers share its instructions.

    Attributes:
        _settings: Endpoint, scope, and timing configuration.
        _store: Encrypted file store for both credential files.
        _oauth: Client for the device code and token endpoints.
        _clock: Returns the current time in epoch milliseconds.

    Example:
        >>> manager = CredentialLifecycleManager(GraphSettings.from_env())
        >>> manager.initialize()
        >>> try:
        ...     token = manager.get_valid_access_token()
        ... except AuthenticationRequired as e:
        ...     print(e.instructions.verification_uri, e.instructions.user_code)
    """

    def __init__(
        self,
        settings: GraphSettings,
        store: SecretStore | None = None,
        oauth_client: DeviceFlowClient | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._settings = settings
        self._store = store if store is not None else SecretStore(KeyDeriver())
        self._oauth = (
            oauth_client if oauth_client is not None else DeviceFlowClient(settings)
        )
        self._clock = clock

        self._lock = threading.RLock()
        self._refresh_lock = threading.Lock()
        self._flow_lock = threading.Lock()
        self._stop = threading.Event()

        self._initialized = False
        self._tokens: TokenSet | None = None
        self._device: DeviceAuthorization | None = None
        self._poll_thread: threading.Thread | None = None
        self._poll_error: Exception | None = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> CredentialState:
        """Current lifecycle state."""
        with self._lock:
            if not self._initialized:
                return CredentialState.UNINITIALIZED

            now = self._clock()
            if self._tokens is not None:
                if self._tokens.needs_refresh(now, self._settings.token_expiry_buffer_ms):
                    return CredentialState.EXPIRING
                return CredentialState.AUTHENTICATED

            if self._device is not None and not self._device.is_expired(now):
                return CredentialState.AWAITING_AUTHORIZATION

            return CredentialState.NO_CREDENTIALS

    @property
    def is_polling(self) -> bool:
        """True while a background poll thread is running."""
        thread = self._poll_thread
        return thread is not None and thread.is_alive()

    def pending_instructions(self) -> AuthInstructions | None:
        """Sign-in instructions for the device flow in progress, if any."""
        with self._lock:
            now = self._clock()
            if self._device is None or self._device.is_expired(now):
                return None
            return AuthInstructions.from_device(self._device, now)

    # =========================================================================
    # Setup
    # =========================================================================

    def initialize(self, resume_pending: bool = True) -> None:
        """Load persisted credential state.

        Ensures the data directory exists and loads the token set and device
        authorization, treating missing files as "never configured". Does
        not start a new device flow. A persisted device flow that has not
        expired has its background poll resumed when no token set is held.

        Args:
            resume_pending: Resume polling for an unexpired persisted
                device flow.

        Raises:
            StorageCorrupted: If a credential file exists but is unreadable.
                The operator must clear storage to proceed.
            IdentityUnavailable: If the machine key cannot be derived.
            CredentialStorageError: If the data directory cannot be created.
        """
        data_dir = self._settings.data_dir
        try:
            data_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as e:
            raise CredentialStorageError(
                f"Failed to create data directory: {e}",
                details={"path": str(data_dir), "error_type": type(e).__name__},
            ) from e

        tokens = self._load_model(self._settings.token_file, TokenSet)
        device = self._load_model(self._settings.device_file, DeviceAuthorization)

        with self._lock:
            self._tokens = tokens
            self._device = device
            self._initialized = True
            self._stop.clear()

            if device is not None and (
                tokens is not None or device.is_expired(self._clock())
            ):
                logger.info("Discarding stale device authorization")
                self._discard_device(device)
                device = None

            if tokens is not None:
                logger.info("Loaded existing tokens")
            elif device is not None and resume_pending:
                logger.info("Resuming polling for pending device authorization")
                self._launch_poller(device)

        logger.info("Credential manager initialized (state=%s)", self.state.value)

    def shutdown(self, timeout: float | None = 1.0) -> None:
        """Stop any background polling.

        In-flight HTTP requests are abandoned; on-disk state is unaffected.
        Calling initialize() again makes the manager usable afterwards.
        """
        self._stop.set()
        thread = self._poll_thread
        if thread is not None and thread.is_alive():
            thread.join(timeout)
        logger.debug("Credential manager shut down")

    # =========================================================================
    # Token vending
    # =========================================================================

    def get_valid_access_token(self) -> str:
        """Return a fresh access token.

        Returns the cached token with no network call while it is outside
        the expiry buffer. Inside the buffer the token is refreshed before
        returning. With no token set, a device flow is started.

        Returns:
            A bearer access token.

        Raises:
            AuthenticationRequired: No credentials are held. Carries the
                sign-in instructions; polling is already running.
            ReauthenticationRequired: Refresh failed and credentials were
                cleared.
            AuthenticationError: The device code request failed.
        """
        self._require_initialized()

        with self._lock:
            tokens = self._tokens

        if tokens is None:
            with self._flow_lock:
                # A concurrent caller may have started a flow or finished one
                with self._lock:
                    tokens = self._tokens
                    if tokens is None:
                        instructions = self._live_flow_instructions()
                        if instructions is not None:
                            raise AuthenticationRequired(instructions)
                if tokens is None:
                    self._begin_device_flow()

        if tokens.needs_refresh(self._clock(), self._settings.token_expiry_buffer_ms):
            logger.info("Token expired or about to expire, refreshing...")
            with self._refresh_lock:
                with self._lock:
                    current = self._tokens
                # Another caller may have refreshed while we waited
                if (
                    current is not None
                    and current is not tokens
                    and not current.needs_refresh(
                        self._clock(), self._settings.token_expiry_buffer_ms
                    )
                ):
                    return current.access_token
                return self._refresh_locked()

        return tokens.access_token

    def refresh_access_token(self) -> str:
        """Exchange the refresh token for a new token set.

        On success the token set is replaced wholesale and persisted. A
        rotated refresh token replaces the old one; otherwise the old one
        is kept. On any failure the token set is cleared in memory and on
        disk. Refresh is never retried automatically.

        Returns:
            The new access token.

        Raises:
            ReauthenticationRequired: If no refresh token is held or the
                exchange fails.
        """
        self._require_initialized()
        with self._refresh_lock:
            return self._refresh_locked()

    def _refresh_locked(self) -> str:
        with self._lock:
            tokens = self._tokens

        if tokens is None or not tokens.refresh_token:
            self._clear_tokens()
            raise ReauthenticationRequired(
                "No refresh token available. Please re-authenticate.",
            )

        try:
            response = self._oauth.refresh(tokens.refresh_token)
            refreshed = TokenSet.issue(
                response, self._clock(), previous_refresh_token=tokens.refresh_token
            )
            with self._lock:
                self._tokens = refreshed
                self._store.save(self._settings.token_file, refreshed.model_dump())
        except (GraphMCPError, requests.RequestException) as e:
            logger.error("Token refresh failed: %s", e)
            self._clear_tokens()
            raise ReauthenticationRequired(
                "Token refresh failed. Please re-authenticate.",
                details={
                    "error_type": type(e).__name__,
                    "error": getattr(e, "error", None),
                },
            ) from e

        logger.info("Token refreshed successfully")
        return refreshed.access_token

    # =========================================================================
    # Device flow
    # =========================================================================

    def start_device_flow(self) -> NoReturn:
        """Request a device code and begin background polling.

        The device authorization is persisted before polling starts. A flow
        already in progress is superseded; its poller exits on its next
        iteration.

        Raises:
            AuthenticationRequired: Always, carrying the sign-in instructions.
            AuthenticationError: If the device code request fails.
            CredentialStorageError: If the device authorization cannot be
                persisted.
        """
        self._require_initialized()
        with self._flow_lock:
            self._begin_device_flow()

    def _begin_device_flow(self) -> NoReturn:
        """Request, persist, and start polling a device code. Caller holds the flow lock."""
        device = self._oauth.request_device_code(issued_at=self._clock())

        with self._lock:
            self._device = device
            self._poll_error = None
            self._store.save(self._settings.device_file, device.model_dump())
            self._launch_poller(device)

        logger.info("Device flow started; awaiting user authorization")
        raise AuthenticationRequired(AuthInstructions.from_device(device, self._clock()))

    def poll_for_token(self, device: DeviceAuthorization | None = None) -> TokenSet | None:
        """Poll the token endpoint until the device flow resolves.

        Sleeps the server-specified interval between attempts, for at most
        ``max_poll_attempts`` attempts. Network errors and server-side 5xx
        responses count against the attempt budget and are retried.

        Args:
            device: The device authorization to poll for (defaults to the
                one currently held).

        Returns:
            The new token set, or None if polling stopped because the flow
            was superseded or the manager shut down.

        Raises:
            AuthorizationDeclined: The user declined.
            AuthorizationExpired: The device code expired.
            AuthorizationTimeout: The attempt budget ran out.
            AuthenticationError: Any other token endpoint error, or no
                device flow in progress.
        """
        if device is None:
            with self._lock:
                device = self._device
        if device is None:
            raise AuthenticationError("No device flow in progress")

        interval = device.interval
        attempts = 0

        while attempts < self._settings.max_poll_attempts:
            if self._stop.is_set() or self._is_superseded(device):
                logger.debug("Polling stopped for device code %s...", device.device_code[:8])
                return None

            if device.is_expired(self._clock()):
                self._discard_device(device)
                raise AuthorizationExpired(
                    "Device code expired. Please try again.",
                    details={"expires_in": device.expires_in},
                )

            try:
                response = self._oauth.exchange_device_code(device.device_code)

            except OAuthServerError as e:
                if e.error == "authorization_pending":
                    pass
                elif e.error == "slow_down":
                    interval += SLOW_DOWN_INCREMENT_SECONDS
                    logger.debug("Device flow: slowing down polling to %ds", interval)
                elif e.error in DECLINED_ERRORS:
                    self._discard_device(device)
                    raise AuthorizationDeclined(
                        "Authorization was declined by the user",
                        details={"device_code": device.device_code[:8] + "..."},
                    ) from e
                elif e.error == "expired_token":
                    self._discard_device(device)
                    raise AuthorizationExpired(
                        "Device code expired. Please try again.",
                        details={"attempts": attempts + 1},
                    ) from e
                elif e.status_code is not None and e.status_code >= 500:
                    logger.warning("Token endpoint unavailable during poll: %s", e)
                else:
                    self._discard_device(device)
                    raise AuthenticationError(
                        f"Token polling failed: {e.message}",
                        details={"error": e.error, "status_code": e.status_code},
                    ) from e

            except requests.RequestException as e:
                logger.warning("Network error during device flow poll: %s", e)

            else:
                tokens = TokenSet.issue(response, self._clock())
                with self._lock:
                    if self._device is not device:
                        logger.info("Discarding tokens for a superseded device flow")
                        return None
                    self._tokens = tokens
                    self._device = None
                    self._store.save(self._settings.token_file, tokens.model_dump())
                    self._store.delete(self._settings.device_file)
                logger.info("Authentication successful!")
                return tokens

            attempts += 1
            if attempts >= self._settings.max_poll_attempts:
                break
            if self._stop.wait(interval):
                return None

        self._discard_device(device)
        raise AuthorizationTimeout(
            "Authentication timeout. Please try again.",
            details={"attempts": attempts},
        )

    def wait_for_authorization(self, timeout: float | None = None) -> bool:
        """Block until the background poll finishes.

        Args:
            timeout: Seconds to wait; None waits for the poll to end.

        Returns:
            True if a token set is held afterwards, False if none is held or
            polling is still running when the timeout elapses.

        Raises:
            AuthenticationError: The terminal error of the device flow
                (declined, expired, timed out) if it failed.
        """
        thread = self._poll_thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                return False

        with self._lock:
            if self._tokens is not None:
                return True
            error = self._poll_error

        if error is not None:
            raise error
        return False

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise AuthenticationError(
                "Credential manager not initialized",
                details={"hint": "Call initialize() before requesting tokens"},
            )

    def _load_model(self, path: Any, model: type[BaseModel]) -> Any:
        data = self._store.load(path)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            logger.error("Stored data at %s has an invalid shape: %s", path, e)
            raise StorageCorrupted(
                f"Stored {model.__name__} is invalid",
                details={"path": str(path), "error_count": e.error_count()},
            ) from e

    def _live_flow_instructions(self) -> AuthInstructions | None:
        """Instructions for a flow that is still being polled. Caller holds the lock."""
        if self._device is None or not self.is_polling:
            return None
        now = self._clock()
        if self._device.is_expired(now):
            return None
        return AuthInstructions.from_device(self._device, now)

    def _is_superseded(self, device: DeviceAuthorization) -> bool:
        with self._lock:
            return self._device is not device

    def _launch_poller(self, device: DeviceAuthorization) -> None:
        """Start the fire-and-forget poll thread. Caller holds the lock."""
        thread = threading.Thread(
            target=self._poll_in_background,
            args=(device,),
            name="graph-mcp-device-poll",
            daemon=True,
        )
        self._poll_thread = thread
        thread.start()

    def _poll_in_background(self, device: DeviceAuthorization) -> None:
        logger.info("Starting background token polling")
        try:
            tokens = self.poll_for_token(device)
        except GraphMCPError as e:
            self._record_poll_error(device, e)
            logger.warning("Background polling failed: %s", e.message)
        except Exception as e:
            self._record_poll_error(device, e)
            logger.exception("Background polling crashed")
        else:
            if tokens is not None:
                logger.info("Background polling completed successfully")

    def _record_poll_error(self, device: DeviceAuthorization, error: Exception) -> None:
        with self._lock:
            # A newer flow owns the error slot once it has started
            if self._device is None or self._device is device:
                self._poll_error = error

    def _discard_device(self, device: DeviceAuthorization) -> None:
        """Forget a device authorization if it is still the current one."""
        with self._lock:
            if self._device is not device:
                return
            self._device = None
            self._store.delete(self._settings.device_file)

    def _clear_tokens(self) -> None:
        with self._lock:
            self._tokens = None
            self._store.delete(self._settings.token_file)
        logger.info("Cleared stored tokens; re-authentication required")


__all__ = [
    "CredentialLifecycleManager",
]
