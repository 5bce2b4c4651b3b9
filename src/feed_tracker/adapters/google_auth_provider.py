"""Google OAuth sign-in provider backed by google-auth."""

import asyncio
import functools
import logging
from dataclasses import dataclass, field

import httpx
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from feed_tracker.domain.auth import Credential, SignedInUser
from feed_tracker.domain.errors import ConfigurationInvalidError
from feed_tracker.services.auth import CredentialRevokedError, SignInProvider

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

_logger = logging.getLogger(__name__)


@dataclass
class GoogleOAuthSignInProvider(SignInProvider):
    """Signs in with a stored OAuth refresh grant.

    The consent screen that produces the refresh token runs outside this
    package; this provider only exchanges the grant for access tokens.
    """

    client_id: str
    client_secret: str
    refresh_token: str | None
    http_client: httpx.AsyncClient
    token_uri: str = GOOGLE_TOKEN_URI
    userinfo_url: str = GOOGLE_USERINFO_URL
    timeout_seconds: float = 15
    _credentials: Credentials | None = field(default=None, init=False)
    _signed_out: bool = field(default=False, init=False)
    _transport: Request = field(default_factory=Request, init=False)

    @classmethod
    def create(
        cls,
        client_id: str,
        client_secret: str,
        refresh_token: str | None,
        token_uri: str = GOOGLE_TOKEN_URI,
        userinfo_url: str = GOOGLE_USERINFO_URL,
        timeout_seconds: float = 15,
    ) -> "GoogleOAuthSignInProvider":
        """Create a provider with a managed httpx session."""
        return cls(
            client_id=client_id,
            client_secret=client_secret,
            refresh_token=refresh_token,
            http_client=httpx.AsyncClient(),
            token_uri=token_uri,
            userinfo_url=userinfo_url,
            timeout_seconds=timeout_seconds,
        )

    async def sign_in(self) -> SignedInUser:
        """Exchange the refresh grant and look up the account email."""
        if not self.refresh_token:
            raise ConfigurationInvalidError("No Google refresh token configured")
        self._signed_out = False
        self._credentials = Credentials(
            token=None,
            refresh_token=self.refresh_token,
            token_uri=self.token_uri,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )
        credential = await self.refresh_credential()
        email = await self._fetch_email(credential.access_token)
        return SignedInUser(email=email, credential=credential)

    async def restore_previous_sign_in(self) -> SignedInUser | None:
        """Restore the stored grant unless the user signed out."""
        if self._signed_out or not self.refresh_token:
            return None
        return await self.sign_in()

    async def sign_out(self) -> None:
        """Forget the in-memory session."""
        self._credentials = None
        self._signed_out = True

    def current_credential(self) -> Credential | None:
        """Return the current access token, if signed in."""
        if self._credentials is None:
            return None
        return Credential(
            access_token=self._credentials.token or "",
            expiry=self._credentials.expiry,
        )

    async def refresh_credential(self) -> Credential:
        """Refresh the access token through the token endpoint."""
        credentials = self._credentials
        if credentials is None:
            raise CredentialRevokedError("Not signed in")
        try:
            await asyncio.to_thread(credentials.refresh, self._token_request())
        except RefreshError as exc:
            if "invalid_grant" in str(exc):
                self._credentials = None
                raise CredentialRevokedError(str(exc)) from exc
            raise
        _logger.info("Access token refreshed, expires at %s", credentials.expiry)
        return Credential(
            access_token=credentials.token or "",
            expiry=credentials.expiry,
        )

    async def close(self) -> None:
        """Close the underlying HTTP sessions."""
        await self.http_client.aclose()
        self._transport.session.close()

    def _token_request(self) -> functools.partial:
        # google-auth waits 120 s by default; use the configured deadline.
        return functools.partial(self._transport, timeout=self.timeout_seconds)

    async def _fetch_email(self, access_token: str) -> str | None:
        try:
            response = await self.http_client.get(
                self.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            _logger.warning("Could not fetch account email: %s", exc)
            return None
        payload = response.json()
        email = payload.get("email") if isinstance(payload, dict) else None
        return email if isinstance(email, str) else None
