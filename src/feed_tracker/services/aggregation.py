"""Aggregations over feed and pumping entries."""

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Protocol

from feed_tracker.domain.feeds import (
    DailyTotal,
    FeedEntry,
    FormulaVolume,
    parse_sheet_date,
)


class VolumeEntry(Protocol):
    """Anything with a sheet date and a signed volume."""

    @property
    def date(self) -> str: ...

    @property
    def effective_volume(self) -> int: ...


def day_window(today: date, days: int, include_today: bool = False) -> list[date]:
    """Return ``days`` consecutive dates ending yesterday (or today), ascending."""
    end = today if include_today else today - timedelta(days=1)
    return [end - timedelta(days=offset) for offset in reversed(range(days))]


def daily_totals(
    entries: Iterable[VolumeEntry], window: Sequence[date]
) -> list[DailyTotal]:
    """Sum effective volume per calendar day of the window.

    Days without entries are reported with volume 0. Entries whose date column
    does not parse are ignored.
    """
    sums = dict.fromkeys(window, 0)
    for entry in entries:
        try:
            day = parse_sheet_date(entry.date)
        except ValueError:
            continue
        if day in sums:
            sums[day] += entry.effective_volume
    return [DailyTotal(date=day, volume=sums[day]) for day in sorted(sums)]


def total_volume(entries: Iterable[VolumeEntry]) -> int:
    """Net volume: feeds minus waste."""
    return sum(entry.effective_volume for entry in entries)


def feed_volume(entries: Iterable[FeedEntry]) -> int:
    """Volume of feed rows only, ignoring waste."""
    return sum(entry.actual_volume for entry in entries if not entry.is_waste)


def waste_volume(entries: Iterable[FeedEntry]) -> int:
    """Volume thrown away."""
    return sum(entry.actual_volume for entry in entries if entry.is_waste)


def most_common_formula_type(entries: Iterable[FeedEntry]) -> str | None:
    """Return the formula fed most often; ties go to the first one seen."""
    counts = Counter(entry.formula_type for entry in entries if not entry.is_waste)
    if not counts:
        return None
    # Counter preserves insertion order, and max() keeps the first maximum.
    return max(counts, key=counts.__getitem__)


def progress_percentage(total: int, goal: int) -> float:
    """Fraction of the daily goal reached."""
    if goal <= 0:
        return 0.0
    return total / goal


def formula_breakdown(entries: Iterable[FeedEntry]) -> list[FormulaVolume]:
    """Per-formula fed volume, largest first."""
    volumes: dict[str, int] = {}
    for entry in entries:
        if entry.is_waste:
            continue
        volumes[entry.formula_type] = (
            volumes.get(entry.formula_type, 0) + entry.actual_volume
        )
    breakdown = [FormulaVolume(formula_type=k, volume=v) for k, v in volumes.items()]
    return sorted(breakdown, key=lambda item: item.volume, reverse=True)
