"""Sign-in state and OAuth token lifecycle."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from feed_tracker.domain.auth import AuthState, Credential, SignedInUser
from feed_tracker.domain.errors import (
    AuthenticationFailedError,
    NotSignedInError,
    StorageServiceError,
)

_logger = logging.getLogger(__name__)


class CredentialRevokedError(Exception):
    """The refresh grant is no longer valid; the user has to sign in again."""


class SignInProvider(Protocol):
    """Interface for the platform sign-in SDK."""

    async def sign_in(self) -> SignedInUser:
        """Run an interactive sign-in and return the account."""

    async def restore_previous_sign_in(self) -> SignedInUser | None:
        """Restore a saved session, or return None if there is none."""

    async def sign_out(self) -> None:
        """Forget the current session."""

    def current_credential(self) -> Credential | None:
        """Return the credential of the current session, if any."""

    async def refresh_credential(self) -> Credential:
        """Exchange the refresh grant for a new access token."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class TokenManager:
    """Keeps a non-expired access token available.

    Tokens are refreshed proactively when they are within
    ``refresh_threshold_seconds`` of expiry. A refresh is attempted up to
    ``max_attempts`` times with exponential backoff between attempts.
    """

    provider: SignInProvider
    refresh_threshold_seconds: float = 600.0
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    clock: Callable[[], datetime] = _utc_now
    state: AuthState = field(default=AuthState.SIGNED_OUT, init=False)
    user_email: str | None = field(default=None, init=False)
    last_error: StorageServiceError | None = field(default=None, init=False)
    _refresh_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @property
    def is_signed_in(self) -> bool:
        return self.state not in (AuthState.SIGNED_OUT, AuthState.SIGNING_IN)

    async def sign_in(self) -> None:
        """Sign in through the provider."""
        self.state = AuthState.SIGNING_IN
        try:
            user = await self.provider.sign_in()
        except StorageServiceError:
            self._mark_signed_out()
            raise
        except Exception as exc:
            self._mark_signed_out()
            raise AuthenticationFailedError(exc) from exc
        self.state = AuthState.SIGNED_IN
        self.user_email = user.email
        self.last_error = None
        _logger.info("Signed in as %s", user.email)

    async def restore_previous_sign_in(self) -> bool:
        """Restore a saved session and validate its token."""
        try:
            user = await self.provider.restore_previous_sign_in()
        except Exception:
            _logger.info("No previous sign-in could be restored", exc_info=True)
            user = None
        if user is None:
            self._mark_signed_out()
            return False
        self.state = AuthState.SIGNED_IN
        self.user_email = user.email
        await self.validate_and_refresh_if_needed()
        return True

    async def sign_out(self) -> None:
        """Sign out and clear local state."""
        await self.provider.sign_out()
        self._mark_signed_out()
        self.last_error = None

    def needs_refresh(self, credential: Credential) -> bool:
        """Return True when the token expires within the refresh threshold."""
        remaining = credential.seconds_until_expiry(self.clock())
        return remaining < self.refresh_threshold_seconds

    async def validate_and_refresh_if_needed(self) -> None:
        """Proactive check used when the app returns to the foreground.

        Failures are recorded in ``last_error`` rather than raised.
        """
        credential = self.provider.current_credential()
        if credential is None:
            self._mark_signed_out()
            return
        if not self.needs_refresh(credential):
            return
        self.state = AuthState.TOKEN_STALE
        try:
            await self.refresh_with_retry()
        except AuthenticationFailedError as exc:
            _logger.warning("Proactive token refresh failed: %s", exc)
            self.last_error = exc

    async def access_token(self, force_refresh: bool = False) -> str:
        """Return a valid access token, refreshing it first when needed."""
        if self.state == AuthState.SIGNED_OUT:
            raise NotSignedInError()
        credential = self.provider.current_credential()
        if credential is None:
            raise NotSignedInError()
        if force_refresh or self.needs_refresh(credential):
            credential = await self.refresh_with_retry()
        return credential.access_token

    async def refresh_with_retry(self) -> Credential:
        """Refresh the token, retrying with exponential backoff."""
        async with self._refresh_lock:
            self.state = AuthState.REFRESHING
            last_error: Exception | None = None
            for attempt in range(1, self.max_attempts + 1):
                try:
                    credential = await self.provider.refresh_credential()
                except asyncio.CancelledError:
                    self.state = AuthState.TOKEN_STALE
                    raise
                except CredentialRevokedError as exc:
                    _logger.warning("Refresh grant revoked, signing out")
                    self._mark_signed_out()
                    self.last_error = AuthenticationFailedError(exc)
                    raise self.last_error from exc
                except Exception as exc:
                    last_error = exc
                    if attempt < self.max_attempts:
                        delay = self.base_delay_seconds * 2 ** (attempt - 1)
                        _logger.warning(
                            "Token refresh failed (attempt %s/%s), retrying in %ss: %s",
                            attempt,
                            self.max_attempts,
                            delay,
                            exc,
                        )
                        try:
                            await self.sleep(delay)
                        except asyncio.CancelledError:
                            self.state = AuthState.TOKEN_STALE
                            raise
                    continue
                self.state = AuthState.SIGNED_IN
                self.last_error = None
                return credential
            self.state = AuthState.TOKEN_STALE
            self.last_error = AuthenticationFailedError(last_error)
            raise self.last_error from last_error

    def _mark_signed_out(self) -> None:
        self.state = AuthState.SIGNED_OUT
        self.user_email = None
