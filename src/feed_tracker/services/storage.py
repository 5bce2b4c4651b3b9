"""Storage service that logs feeds and pumping sessions to a spreadsheet."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Collection
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol, TypeVar

from feed_tracker.adapters.sheets_client import SheetsClient
from feed_tracker.domain.errors import (
    ConfigurationInvalidError,
    DataFormatError,
    StorageServiceError,
)
from feed_tracker.domain.feeds import (
    DailyTotal,
    FeedEntry,
    PumpingEntry,
    format_sheet_date,
)
from feed_tracker.domain.storage import (
    StorageConfiguration,
    StorageOption,
    StorageProvider,
)
from feed_tracker.services.aggregation import daily_totals, day_window, total_volume
from feed_tracker.services.auth import TokenManager
from feed_tracker.services.cache import Cache
from feed_tracker.services.rows import (
    decode_feed_rows,
    decode_pumping_rows,
    encode_feed_row,
    encode_pumping_row,
)

FEED_RANGE = "A:E"
PUMPING_RANGE = "Pumping!A:C"
FEED_SHEET_TITLE = "Feed Log"
PUMPING_SHEET_TITLE = "Pumping"
FEED_HEADERS = ("Date", "Time", "Volume (mL)", "Formula Type", "Waste")
PUMPING_HEADERS = ("Date", "Time", "Volume (mL)")
WEEK_DAYS = 7


class CacheKeys:
    """Cache keys for fetched datasets."""

    TODAY_FEED_TOTAL = "today_feed_total"
    TODAY_FEEDS = "today_feeds"
    PAST_7_DAYS_FEED_TOTALS = "past_7_days_feed_totals"
    RECENT_FEED_ENTRIES = "recent_feed_entries"
    TODAY_PUMPING_TOTAL = "today_pumping_total"
    TODAY_PUMPING_SESSIONS = "today_pumping_sessions"
    PAST_7_DAYS_PUMPING_TOTALS = "past_7_days_pumping_totals"

    FEED = (TODAY_FEED_TOTAL, TODAY_FEEDS, PAST_7_DAYS_FEED_TOTALS)
    PUMPING = (
        TODAY_PUMPING_TOTAL,
        TODAY_PUMPING_SESSIONS,
        PAST_7_DAYS_PUMPING_TOTALS,
    )


T = TypeVar("T")

_logger = logging.getLogger(__name__)


class StorageService(Protocol):
    """Operations the app needs from a feed log backend."""

    @property
    def is_signed_in(self) -> bool: ...

    @property
    def user_email(self) -> str | None: ...

    async def sign_in(self) -> None:
        """Sign in to the backend."""

    async def sign_out(self) -> None:
        """Sign out of the backend."""

    async def append_feed(
        self,
        date: str,
        time: str,
        volume: str,
        formula_type: str,
        waste_amount: str = "0",
    ) -> None:
        """Append a feed row."""

    async def fetch_today_feed_total(self, force_refresh: bool = False) -> int:
        """Return today's net feed volume."""

    async def fetch_today_feeds(self, force_refresh: bool = False) -> list[FeedEntry]:
        """Return today's feed rows."""

    async def fetch_past_7_days_feed_totals(
        self, force_refresh: bool = False
    ) -> list[DailyTotal]:
        """Return daily feed totals for the seven days before today."""

    async def fetch_recent_feed_entries(
        self, days: int, force_refresh: bool = False
    ) -> list[FeedEntry]:
        """Return feed rows from today and the previous days, newest first."""

    async def append_pumping(self, date: str, time: str, volume: str) -> None:
        """Append a pumping row."""

    async def fetch_today_pumping_total(self, force_refresh: bool = False) -> int:
        """Return today's pumped volume."""

    async def fetch_today_pumping_sessions(
        self, force_refresh: bool = False
    ) -> list[PumpingEntry]:
        """Return today's pumping rows."""

    async def fetch_past_7_days_pumping_totals(
        self, force_refresh: bool = False
    ) -> list[DailyTotal]:
        """Return daily pumping totals for the seven days before today."""

    async def update_feed_entry(  # noqa: PLR0913
        self,
        entry: FeedEntry,
        new_date: str,
        new_time: str,
        new_volume: str,
        new_formula_type: str,
        new_waste_amount: str,
    ) -> None:
        """Overwrite a previously fetched feed row."""

    async def delete_feed_entry(self, entry: FeedEntry) -> None:
        """Clear a previously fetched feed row."""

    async def update_pumping_entry(
        self, entry: PumpingEntry, new_date: str, new_time: str, new_volume: str
    ) -> None:
        """Overwrite a previously fetched pumping row."""

    async def delete_pumping_entry(self, entry: PumpingEntry) -> None:
        """Clear a previously fetched pumping row."""

    def update_configuration(self, config: StorageConfiguration) -> None:
        """Point the service at another store."""

    async def fetch_available_storage_options(self) -> list[StorageOption]:
        """List stores the user can pick."""

    async def create_new_storage(self, title: str) -> str:
        """Create a new store and return its identifier."""


@dataclass
class GoogleSheetsStorageService(StorageService):
    """Spreadsheet-backed storage with caching and token refresh."""

    sheets_client: SheetsClient
    token_manager: TokenManager
    cache: Cache
    configuration: StorageConfiguration | None = None
    feed_range: str = FEED_RANGE
    pumping_range: str = PUMPING_RANGE
    today: Callable[[], date] = date.today
    _in_flight: dict[str, asyncio.Future] = field(default_factory=dict, init=False)
    _recent_keys: set[str] = field(default_factory=set, init=False)

    @property
    def is_signed_in(self) -> bool:
        return self.token_manager.is_signed_in

    @property
    def user_email(self) -> str | None:
        return self.token_manager.user_email

    @property
    def spreadsheet_id(self) -> str:
        if self.configuration is None or not self.configuration.identifier:
            raise ConfigurationInvalidError()
        return self.configuration.identifier

    async def sign_in(self) -> None:
        """Sign in through the token manager."""
        await self.token_manager.sign_in()

    async def sign_out(self) -> None:
        """Sign out and drop every cached dataset."""
        await self.token_manager.sign_out()
        self.cache.clear_all()

    async def restore_previous_sign_in(self) -> bool:
        """Restore a saved session if there is one."""
        return await self.token_manager.restore_previous_sign_in()

    async def handle_foreground(self) -> None:
        """Refresh the token proactively when the app becomes active."""
        await self.token_manager.validate_and_refresh_if_needed()

    # Feed operations

    async def append_feed(
        self,
        date: str,
        time: str,
        volume: str,
        formula_type: str,
        waste_amount: str = "0",
    ) -> None:
        """Append a five-column feed row."""
        row = [date, time, volume, formula_type, waste_amount]
        await self._append_row(self.feed_range, row)
        _logger.info("Appended feed row: %s", row)
        self._invalidate_feeds()

    async def append_feed_entry(self, entry: FeedEntry) -> None:
        """Append a feed entry, deriving the waste column from its volume."""
        await self.append_feed(*encode_feed_row(entry))

    async def fetch_today_feed_total(self, force_refresh: bool = False) -> int:
        """Return today's volume with waste subtracted."""

        async def load() -> int:
            values = await self._read_values(self.feed_range)
            today = {format_sheet_date(self.today())}
            return total_volume(decode_feed_rows(values, dates=today))

        return await self._cached(CacheKeys.TODAY_FEED_TOTAL, load, force_refresh)

    async def fetch_today_feeds(self, force_refresh: bool = False) -> list[FeedEntry]:
        """Return today's feed and waste rows in sheet order."""

        async def load() -> list[FeedEntry]:
            values = await self._read_values(self.feed_range)
            return decode_feed_rows(values, dates={format_sheet_date(self.today())})

        return await self._cached(CacheKeys.TODAY_FEEDS, load, force_refresh)

    async def fetch_past_7_days_feed_totals(
        self, force_refresh: bool = False
    ) -> list[DailyTotal]:
        """Return net daily totals for the seven days before today."""

        async def load() -> list[DailyTotal]:
            window = day_window(self.today(), WEEK_DAYS)
            values = await self._read_values(self.feed_range)
            entries = decode_feed_rows(values, dates=_sheet_dates(window))
            return daily_totals(entries, window)

        return await self._cached(
            CacheKeys.PAST_7_DAYS_FEED_TOTALS, load, force_refresh
        )

    async def fetch_recent_feed_entries(
        self, days: int, force_refresh: bool = False
    ) -> list[FeedEntry]:
        """Return rows from today and the previous ``days`` days, newest first."""

        async def load() -> list[FeedEntry]:
            window = day_window(self.today(), days + 1, include_today=True)
            values = await self._read_values(self.feed_range)
            entries = decode_feed_rows(values, dates=_sheet_dates(window))
            return sorted(entries, key=lambda entry: entry.full_date, reverse=True)

        key = f"{CacheKeys.RECENT_FEED_ENTRIES}:{days}"
        self._recent_keys.add(key)
        return await self._cached(key, load, force_refresh)

    async def update_feed_entry(  # noqa: PLR0913
        self,
        entry: FeedEntry,
        new_date: str,
        new_time: str,
        new_volume: str,
        new_formula_type: str,
        new_waste_amount: str,
    ) -> None:
        """Overwrite the row the entry was read from."""
        row_index = _require_row_index(entry.row_index)
        row = [new_date, new_time, new_volume, new_formula_type, new_waste_amount]
        await self._update_row(_row_range(self.feed_range, row_index), row)
        _logger.info("Updated feed row %s: %s", row_index, row)
        self._invalidate_feeds()

    async def delete_feed_entry(self, entry: FeedEntry) -> None:
        """Clear the cells of the row the entry was read from."""
        row_index = _require_row_index(entry.row_index)
        await self._clear_row(_row_range(self.feed_range, row_index))
        _logger.info("Cleared feed row %s", row_index)
        self._invalidate_feeds()

    # Pumping operations

    async def append_pumping(self, date: str, time: str, volume: str) -> None:
        """Append a three-column pumping row."""
        row = [date, time, volume]
        await self._append_row(self.pumping_range, row)
        _logger.info("Appended pumping row: %s", row)
        self._invalidate(CacheKeys.PUMPING)

    async def append_pumping_entry(self, entry: PumpingEntry) -> None:
        """Append a pumping entry."""
        await self.append_pumping(*encode_pumping_row(entry))

    async def fetch_today_pumping_total(self, force_refresh: bool = False) -> int:
        """Return today's pumped volume."""

        async def load() -> int:
            values = await self._read_values(self.pumping_range)
            today = {format_sheet_date(self.today())}
            return total_volume(decode_pumping_rows(values, dates=today))

        return await self._cached(CacheKeys.TODAY_PUMPING_TOTAL, load, force_refresh)

    async def fetch_today_pumping_sessions(
        self, force_refresh: bool = False
    ) -> list[PumpingEntry]:
        """Return today's pumping rows in sheet order."""

        async def load() -> list[PumpingEntry]:
            values = await self._read_values(self.pumping_range)
            return decode_pumping_rows(
                values, dates={format_sheet_date(self.today())}
            )

        return await self._cached(
            CacheKeys.TODAY_PUMPING_SESSIONS, load, force_refresh
        )

    async def fetch_past_7_days_pumping_totals(
        self, force_refresh: bool = False
    ) -> list[DailyTotal]:
        """Return daily pumping totals for the seven days before today."""

        async def load() -> list[DailyTotal]:
            window = day_window(self.today(), WEEK_DAYS)
            values = await self._read_values(self.pumping_range)
            entries = decode_pumping_rows(values, dates=_sheet_dates(window))
            return daily_totals(entries, window)

        return await self._cached(
            CacheKeys.PAST_7_DAYS_PUMPING_TOTALS, load, force_refresh
        )

    async def update_pumping_entry(
        self, entry: PumpingEntry, new_date: str, new_time: str, new_volume: str
    ) -> None:
        """Overwrite the row the entry was read from."""
        row_index = _require_row_index(entry.row_index)
        row = [new_date, new_time, new_volume]
        await self._update_row(_row_range(self.pumping_range, row_index), row)
        _logger.info("Updated pumping row %s: %s", row_index, row)
        self._invalidate(CacheKeys.PUMPING)

    async def delete_pumping_entry(self, entry: PumpingEntry) -> None:
        """Clear the cells of the row the entry was read from."""
        row_index = _require_row_index(entry.row_index)
        await self._clear_row(_row_range(self.pumping_range, row_index))
        _logger.info("Cleared pumping row %s", row_index)
        self._invalidate(CacheKeys.PUMPING)

    # Configuration

    def update_configuration(self, config: StorageConfiguration) -> None:
        """Switch spreadsheets; cached data from the old one is dropped."""
        if config.provider != StorageProvider.GOOGLE_SHEETS or not config.identifier:
            raise ConfigurationInvalidError()
        self.configuration = config
        self.cache.clear_all()
        _logger.info("Storage configured: %s (%s)", config.name, config.identifier)

    async def fetch_available_storage_options(self) -> list[StorageOption]:
        """List the user's spreadsheets, most recently modified first."""
        payload = await self._perform_authenticated(
            self.sheets_client.list_spreadsheets
        )
        files = payload.get("files")
        if not isinstance(files, list):
            return []
        options = []
        for item in files:
            if not isinstance(item, dict):
                continue
            file_id = item.get("id")
            name = item.get("name")
            if not isinstance(file_id, str) or not isinstance(name, str):
                continue
            modified = item.get("modifiedTime")
            options.append(
                StorageOption(
                    id=file_id,
                    name=name,
                    provider=StorageProvider.GOOGLE_SHEETS,
                    last_modified=modified if isinstance(modified, str) else None,
                )
            )
        return options

    async def create_new_storage(self, title: str) -> str:
        """Create a spreadsheet with feed and pumping sheets, return its id."""
        body = _new_spreadsheet_body(title)
        payload = await self._perform_authenticated(
            lambda token: self.sheets_client.create_spreadsheet(token, body)
        )
        spreadsheet_id = payload.get("spreadsheetId")
        if not isinstance(spreadsheet_id, str) or not spreadsheet_id:
            raise DataFormatError()
        _logger.info("Created spreadsheet %s (%s)", title, spreadsheet_id)
        return spreadsheet_id

    # Remote helpers

    async def _perform_authenticated(
        self, operation: Callable[[str], Awaitable[T]]
    ) -> T:
        """Run a remote call with a fresh token, retrying once after a refresh."""
        access_token = await self.token_manager.access_token()
        try:
            return await operation(access_token)
        except StorageServiceError as exc:
            _logger.warning("Remote call failed, retrying with new token: %s", exc)
        access_token = await self.token_manager.access_token(force_refresh=True)
        return await operation(access_token)

    async def _read_values(self, range_a1: str) -> list[list[object]]:
        spreadsheet_id = self.spreadsheet_id
        payload = await self._perform_authenticated(
            lambda token: self.sheets_client.get_values(
                token, spreadsheet_id, range_a1
            )
        )
        values = payload.get("values")
        if values is None:
            return []
        if not isinstance(values, list):
            raise DataFormatError()
        return [row for row in values if isinstance(row, list)]

    async def _append_row(self, range_a1: str, row: list[str]) -> None:
        spreadsheet_id = self.spreadsheet_id
        await self._perform_authenticated(
            lambda token: self.sheets_client.append_values(
                token, spreadsheet_id, range_a1, [row]
            )
        )

    async def _update_row(self, range_a1: str, row: list[str]) -> None:
        spreadsheet_id = self.spreadsheet_id
        await self._perform_authenticated(
            lambda token: self.sheets_client.update_values(
                token, spreadsheet_id, range_a1, [row]
            )
        )

    async def _clear_row(self, range_a1: str) -> None:
        spreadsheet_id = self.spreadsheet_id
        await self._perform_authenticated(
            lambda token: self.sheets_client.clear_values(
                token, spreadsheet_id, range_a1
            )
        )

    async def _cached(
        self, key: str, load: Callable[[], Awaitable[T]], force_refresh: bool
    ) -> T:
        """Serve from cache, or load once even if several callers ask at once."""
        if not force_refresh:
            cached = self.cache.retrieve(key)
            if cached is not None:
                _logger.debug("Cache hit: %s", key)
                return cached  # type: ignore[return-value]

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load_and_store(key, load))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget_load(key, done))
        # A cancelled caller stops waiting; the shared load keeps running.
        return await asyncio.shield(task)

    async def _load_and_store(self, key: str, load: Callable[[], Awaitable[T]]) -> T:
        value = await load()
        self.cache.store(value, key)
        return value

    def _forget_load(self, key: str, task: asyncio.Future) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark as retrieved when every caller has stopped waiting.
            task.exception()

    def _invalidate(self, keys: Collection[str]) -> None:
        for key in keys:
            self.cache.clear(key)

    def _invalidate_feeds(self) -> None:
        # Recent entries are cached per window length.
        self._invalidate((*CacheKeys.FEED, *self._recent_keys))


def _require_row_index(row_index: int | None) -> int:
    if row_index is None:
        raise DataFormatError("Entry has no sheet row; fetch it before editing")
    return row_index


def _row_range(range_a1: str, row_index: int) -> str:
    """Turn ``Pumping!A:C`` into ``Pumping!A7:C7`` for row 7."""
    sheet, _, columns = range_a1.rpartition("!")
    first, _, last = columns.partition(":")
    prefix = f"{sheet}!" if sheet else ""
    return f"{prefix}{first}{row_index}:{last}{row_index}"


def _sheet_dates(window: Collection[date]) -> set[str]:
    return {format_sheet_date(day) for day in window}


def _header_row(headers: tuple[str, ...]) -> dict[str, object]:
    return {
        "values": [{"userEnteredValue": {"stringValue": value}} for value in headers]
    }


def _new_spreadsheet_body(title: str) -> dict[str, object]:
    return {
        "properties": {"title": title},
        "sheets": [
            {
                "properties": {"title": sheet_title},
                "data": [
                    {
                        "startRow": 0,
                        "startColumn": 0,
                        "rowData": [_header_row(headers)],
                    }
                ],
            }
            for sheet_title, headers in (
                (FEED_SHEET_TITLE, FEED_HEADERS),
                (PUMPING_SHEET_TITLE, PUMPING_HEADERS),
            )
        ],
    }