"""Domain models for feed and pumping logs."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

SHEET_DATE_FORMAT = "%m/%d/%Y"
SHEET_TIME_FORMATS = ("%I:%M %p", "%H:%M")

DISTANT_PAST = datetime.min


def format_sheet_date(value: date) -> str:
    """Format a date the way the sheet stores it (``6/29/2025``)."""
    return f"{value.month}/{value.day}/{value.year}"


def format_sheet_time(value: datetime) -> str:
    """Format a time as 12-hour clock with AM/PM (``2:30 PM``)."""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def parse_sheet_date(value: str) -> date:
    """Parse a sheet date string, raising ValueError when malformed."""
    return datetime.strptime(value.strip(), SHEET_DATE_FORMAT).date()


def parse_entry_timestamp(date_text: str, time_text: str) -> datetime:
    """Combine sheet date and time columns into a naive local datetime.

    Rows written by the app use ``h:mm a``; rows from the template sheet use
    ``HH:mm``. Raises ValueError when neither format matches.
    """
    day = parse_sheet_date(date_text)
    cleaned = time_text.strip().upper()
    for time_format in SHEET_TIME_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, time_format)
        except ValueError:
            continue
        return datetime.combine(day, parsed.time())
    raise ValueError(f"Unrecognised time value: {time_text!r}")


def _full_date(date_text: str, time_text: str) -> datetime:
    try:
        return parse_entry_timestamp(date_text, time_text)
    except ValueError:
        return DISTANT_PAST


@dataclass(frozen=True)
class FeedEntry:
    """A single feed or waste row.

    Positive volume is a feed, negative volume is formula thrown away.
    ``row_index`` is the 1-based sheet row the entry was read from.
    """

    date: str
    time: str
    volume: int
    formula_type: str
    waste_amount: int = 0
    row_index: int | None = field(default=None, compare=False)

    @classmethod
    def create(
        cls,
        when: datetime,
        volume: int,
        formula_type: str,
        is_waste: bool = False,
    ) -> "FeedEntry":
        """Build an entry from a timestamp, keeping waste columns consistent."""
        amount = abs(volume)
        return cls(
            date=format_sheet_date(when.date()),
            time=format_sheet_time(when),
            volume=-amount if is_waste else amount,
            formula_type=formula_type,
            waste_amount=amount if is_waste else 0,
        )

    @property
    def is_waste(self) -> bool:
        return self.volume < 0

    @property
    def actual_volume(self) -> int:
        return abs(self.volume)

    @property
    def effective_volume(self) -> int:
        return self.volume

    @property
    def full_date(self) -> datetime:
        return _full_date(self.date, self.time)


@dataclass(frozen=True)
class PumpingEntry:
    """A single pumping session row."""

    date: str
    time: str
    volume: int
    row_index: int | None = field(default=None, compare=False)

    @classmethod
    def create(cls, when: datetime, volume: int) -> "PumpingEntry":
        """Build a pumping entry from a timestamp."""
        return cls(
            date=format_sheet_date(when.date()),
            time=format_sheet_time(when),
            volume=abs(volume),
        )

    @property
    def effective_volume(self) -> int:
        return self.volume

    @property
    def full_date(self) -> datetime:
        return _full_date(self.date, self.time)


@dataclass(frozen=True)
class DailyTotal:
    """Aggregate volume for one calendar day."""

    date: date
    volume: int

    @property
    def day_name(self) -> str:
        return self.date.strftime("%a")

    @property
    def short_date(self) -> str:
        return f"{self.date.month}/{self.date.day}"

    def is_today(self, today: date | None = None) -> bool:
        """Return True when the total is for today."""
        return self.date == (today or date.today())

    def is_yesterday(self, today: date | None = None) -> bool:
        """Return True when the total is for yesterday."""
        return self.date == (today or date.today()) - timedelta(days=1)


@dataclass(frozen=True)
class FormulaVolume:
    """Volume fed for one formula type."""

    formula_type: str
    volume: int
