"""Domain models for sign-in state."""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum


class AuthState(StrEnum):
    """Lifecycle of the signed-in account."""

    SIGNED_OUT = "signed_out"
    SIGNING_IN = "signing_in"
    SIGNED_IN = "signed_in"
    TOKEN_STALE = "token_stale"
    REFRESHING = "refreshing"


@dataclass(frozen=True)
class Credential:
    """OAuth access token and its expiry."""

    access_token: str
    expiry: datetime | None = None

    def seconds_until_expiry(self, now: datetime | None = None) -> float:
        """Return seconds left before expiry, 0 when expiry is unknown."""
        if self.expiry is None:
            return 0.0
        expiry = self.expiry
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        current = now or datetime.now(tz=UTC)
        return (expiry - current).total_seconds()


@dataclass(frozen=True)
class SignedInUser:
    """Account returned by the sign-in provider."""

    email: str | None
    credential: Credential
