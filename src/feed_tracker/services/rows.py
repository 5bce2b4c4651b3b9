"""Conversion between sheet rows and feed/pumping entries.

Feed rows come in two layouts that live side by side in the same sheet:

* legacy rows: ``Date, Time, Volume, Formula Type``
* current rows: ``Date, Time, Volume, Formula Type, Waste Amount``

Writes always use the current layout. Reads accept both and never raise; a
row that cannot be decoded is dropped by the ``decode_*_rows`` helpers.
"""

import logging
import re
from collections.abc import Collection, Iterable, Sequence

from feed_tracker.domain.feeds import FeedEntry, PumpingEntry

LEGACY_FEED_COLUMNS = 4
FEED_COLUMNS = 5
PUMPING_COLUMNS = 3

_INTEGER = re.compile(r"[+-]?\d+")

_logger = logging.getLogger(__name__)


def parse_int(value: object) -> int | None:
    """Parse a whole-number cell, returning None for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not _INTEGER.fullmatch(cleaned):
        return None
    return int(cleaned)


def encode_feed_row(entry: FeedEntry) -> list[str]:
    """Encode a feed entry as a five-column row."""
    waste_amount = entry.actual_volume if entry.is_waste else 0
    return [
        entry.date,
        entry.time,
        str(entry.volume),
        entry.formula_type,
        str(waste_amount),
    ]


def decode_feed_row(
    row: Sequence[object], row_index: int | None = None
) -> FeedEntry | None:
    """Decode a legacy or current feed row, or return None."""
    if len(row) < LEGACY_FEED_COLUMNS:
        return None
    volume = parse_int(row[2])
    if volume is None:
        return None
    waste_amount = 0
    if len(row) >= FEED_COLUMNS:
        waste_amount = parse_int(row[4]) or 0
    return FeedEntry(
        date=str(row[0]),
        time=str(row[1]),
        volume=volume,
        formula_type=str(row[3]),
        waste_amount=waste_amount,
        row_index=row_index,
    )


def encode_pumping_row(entry: PumpingEntry) -> list[str]:
    """Encode a pumping entry as a three-column row."""
    return [entry.date, entry.time, str(entry.volume)]


def decode_pumping_row(
    row: Sequence[object], row_index: int | None = None
) -> PumpingEntry | None:
    """Decode a pumping row, or return None."""
    if len(row) < PUMPING_COLUMNS:
        return None
    volume = parse_int(row[2])
    if volume is None:
        return None
    return PumpingEntry(
        date=str(row[0]),
        time=str(row[1]),
        volume=volume,
        row_index=row_index,
    )


def decode_feed_rows(
    values: Iterable[Sequence[object]], dates: Collection[str] | None = None
) -> list[FeedEntry]:
    """Decode sheet values into feed entries, keeping 1-based row positions."""
    entries: list[FeedEntry] = []
    for index, row in enumerate(values, start=1):
        if dates is not None and (not row or row[0] not in dates):
            continue
        entry = decode_feed_row(row, row_index=index)
        if entry is None:
            _logger.debug("Skipping undecodable feed row %s: %s", index, row)
            continue
        entries.append(entry)
    return entries


def decode_pumping_rows(
    values: Iterable[Sequence[object]], dates: Collection[str] | None = None
) -> list[PumpingEntry]:
    """Decode sheet values into pumping entries, keeping 1-based row positions."""
    entries: list[PumpingEntry] = []
    for index, row in enumerate(values, start=1):
        if dates is not None and (not row or row[0] not in dates):
            continue
        entry = decode_pumping_row(row, row_index=index)
        if entry is None:
            _logger.debug("Skipping undecodable pumping row %s: %s", index, row)
            continue
        entries.append(entry)
    return entries
