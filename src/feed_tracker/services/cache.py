"""Simple cache abstractions."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

DEFAULT_MAX_AGE_SECONDS = 300.0


class Cache(Protocol):
    """Cache interface for fetched sheet data."""

    def store(self, value: object, key: str) -> None:
        """Store a value, replacing any previous entry."""

    def retrieve(self, key: str, max_age: float | None = None) -> object | None:
        """Return a cached value if present and not stale."""

    def clear(self, key: str) -> None:
        """Drop a single entry."""

    def clear_all(self) -> None:
        """Drop every entry."""

    def clear_stale(self, max_age: float | None = None) -> None:
        """Drop entries older than max_age."""


@dataclass
class _CacheEntry:
    value: object
    stored_at: float

    def is_stale(self, now: float, max_age: float) -> bool:
        return now - self.stored_at > max_age


class InMemoryCache(Cache):
    """Process-local cache with passive expiry on read."""

    def __init__(
        self,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def store(self, value: object, key: str) -> None:
        """Store a value stamped with the current time."""
        with self._lock:
            self._entries[key] = _CacheEntry(value=value, stored_at=self._clock())

    def retrieve(self, key: str, max_age: float | None = None) -> object | None:
        """Return a cached value unless it is older than max_age."""
        limit = self.max_age_seconds if max_age is None else max_age
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_stale(self._clock(), limit):
                return None
            return entry.value

    def clear(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def clear_stale(self, max_age: float | None = None) -> None:
        """Sweep entries that would be reported as misses."""
        limit = self.max_age_seconds if max_age is None else max_age
        with self._lock:
            now = self._clock()
            stale = [
                key
                for key, entry in self._entries.items()
                if entry.is_stale(now, limit)
            ]
            for key in stale:
                del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
