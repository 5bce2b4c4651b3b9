"""Domain models for storage configuration."""

from dataclasses import dataclass
from enum import StrEnum


class StorageProvider(StrEnum):
    """Backends a storage configuration can point at."""

    GOOGLE_SHEETS = "google_sheets"
    FIREBASE = "firebase"
    AWS = "aws"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    StorageProvider.GOOGLE_SHEETS: "Google Sheets",
    StorageProvider.FIREBASE: "Firebase",
    StorageProvider.AWS: "AWS",
}


@dataclass(frozen=True)
class StorageConfiguration:
    """Selected store: spreadsheet id, display name and provider."""

    identifier: str
    name: str
    provider: StorageProvider = StorageProvider.GOOGLE_SHEETS


@dataclass(frozen=True)
class StorageOption:
    """A store the signed-in user can pick."""

    id: str
    name: str
    provider: StorageProvider
    last_modified: str | None = None

    @property
    def display_name(self) -> str:
        return self.name
