"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import pytest

from feed_tracker.adapters.sheets_client import SheetsClient
from feed_tracker.config import Settings
from feed_tracker.domain.auth import Credential, SignedInUser
from feed_tracker.domain.preferences import Preferences
from feed_tracker.domain.storage import StorageConfiguration
from feed_tracker.services.auth import (
    CredentialRevokedError,
    SignInProvider,
    TokenManager,
)
from feed_tracker.services.cache import InMemoryCache
from feed_tracker.services.preferences import PreferencesRepository
from feed_tracker.services.storage import GoogleSheetsStorageService

TODAY = date(2025, 6, 29)
SPREADSHEET_ID = "sheet-123"


def fresh_credential(token: str = "token-0", minutes: int = 60) -> Credential:
    return Credential(
        access_token=token,
        expiry=datetime.now(tz=UTC) + timedelta(minutes=minutes),
    )


@dataclass
class FakeSignInProvider(SignInProvider):
    """Sign-in provider with scripted refresh outcomes."""

    email: str | None = "parent@example.com"
    credential: Credential | None = None
    refresh_failures: int = 0
    revoked: bool = False
    restorable: bool = False
    sign_in_error: Exception | None = None
    refresh_calls: int = 0
    signed_out: bool = False

    async def sign_in(self) -> SignedInUser:
        if self.sign_in_error is not None:
            raise self.sign_in_error
        self.credential = fresh_credential()
        return SignedInUser(email=self.email, credential=self.credential)

    async def restore_previous_sign_in(self) -> SignedInUser | None:
        if not self.restorable:
            return None
        if self.credential is None:
            self.credential = fresh_credential()
        return SignedInUser(email=self.email, credential=self.credential)

    async def sign_out(self) -> None:
        self.credential = None
        self.signed_out = True

    def current_credential(self) -> Credential | None:
        return self.credential

    async def refresh_credential(self) -> Credential:
        self.refresh_calls += 1
        if self.revoked:
            raise CredentialRevokedError("invalid_grant")
        if self.refresh_failures > 0:
            self.refresh_failures -= 1
            raise RuntimeError("token endpoint unavailable")
        self.credential = fresh_credential(f"token-{self.refresh_calls}")
        return self.credential


@dataclass
class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)

    @property
    def total(self) -> float:
        return sum(self.delays)


@dataclass
class FakeSheetsClient(SheetsClient):
    """In-memory spreadsheet keyed by sheet name."""

    sheets: dict[str, list[list[str]]] = field(
        default_factory=lambda: {"": [], "Pumping": []}
    )
    calls: list[tuple[str, str]] = field(default_factory=list)
    tokens: list[str] = field(default_factory=list)
    failures: list[Exception] = field(default_factory=list)
    files: list[dict[str, object]] = field(default_factory=list)
    created: list[dict[str, object]] = field(default_factory=list)
    delay: bool = False
    gate: asyncio.Event | None = None

    async def get_values(
        self, access_token: str, spreadsheet_id: str, range_a1: str
    ) -> dict[str, object]:
        await self._record("get", access_token, range_a1)
        rows = self.sheets[_sheet_name(range_a1)]
        return {"values": [list(row) for row in rows]} if rows else {}

    async def append_values(
        self,
        access_token: str,
        spreadsheet_id: str,
        range_a1: str,
        values: list[list[str]],
    ) -> dict[str, object]:
        await self._record("append", access_token, range_a1)
        self.sheets[_sheet_name(range_a1)].extend(values)
        return {"updates": {"updatedRows": len(values)}}

    async def update_values(
        self,
        access_token: str,
        spreadsheet_id: str,
        range_a1: str,
        values: list[list[str]],
    ) -> dict[str, object]:
        await self._record("update", access_token, range_a1)
        rows = self.sheets[_sheet_name(range_a1)]
        rows[_row_number(range_a1) - 1] = values[0]
        return {"updatedRows": 1}

    async def clear_values(
        self, access_token: str, spreadsheet_id: str, range_a1: str
    ) -> dict[str, object]:
        await self._record("clear", access_token, range_a1)
        rows = self.sheets[_sheet_name(range_a1)]
        rows[_row_number(range_a1) - 1] = []
        return {"clearedRange": range_a1}

    async def create_spreadsheet(
        self, access_token: str, body: dict[str, object]
    ) -> dict[str, object]:
        await self._record("create", access_token, "")
        self.created.append(body)
        return {"spreadsheetId": "new-sheet-id"}

    async def list_spreadsheets(self, access_token: str) -> dict[str, object]:
        await self._record("list", access_token, "")
        return {"files": self.files}

    def count(self, kind: str) -> int:
        return sum(1 for call, _ in self.calls if call == kind)

    async def _record(self, kind: str, access_token: str, range_a1: str) -> None:
        self.calls.append((kind, range_a1))
        self.tokens.append(access_token)
        if self.delay:
            await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)


def _sheet_name(range_a1: str) -> str:
    sheet, _, _ = range_a1.rpartition("!")
    return sheet


def _row_number(range_a1: str) -> int:
    _, _, cells = range_a1.rpartition("!")
    first = cells.split(":")[0]
    return int("".join(ch for ch in first if ch.isdigit()))


@dataclass
class InMemoryPreferencesRepository(PreferencesRepository):
    """In-memory preferences repository for tests."""

    saved: Preferences | None = None
    saves: int = 0

    def load(self) -> Preferences | None:
        return self.saved

    def save(self, preferences: Preferences) -> None:
        self.saved = preferences
        self.saves += 1


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        google_client_id="client-id",
        google_client_secret="client-secret",
        google_refresh_token="refresh-token",
        spreadsheet_id=SPREADSHEET_ID,
        preferences_path=str(tmp_path / "preferences.json"),
    )


@pytest.fixture
def sign_in_provider() -> FakeSignInProvider:
    return FakeSignInProvider()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def token_manager(
    sign_in_provider: FakeSignInProvider, recording_sleep: RecordingSleep
) -> TokenManager:
    manager = TokenManager(provider=sign_in_provider, sleep=recording_sleep)
    asyncio.run(manager.sign_in())
    return manager


@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def storage_service(
    sheets_client: FakeSheetsClient, token_manager: TokenManager
) -> GoogleSheetsStorageService:
    return GoogleSheetsStorageService(
        sheets_client=sheets_client,
        token_manager=token_manager,
        cache=InMemoryCache(),
        configuration=StorageConfiguration(identifier=SPREADSHEET_ID, name="Feeds"),
        today=lambda: TODAY,
    )
