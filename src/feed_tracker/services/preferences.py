"""User preferences service."""

from dataclasses import dataclass, field
from typing import Protocol

from feed_tracker.config import parse_csv_list, parse_quick_volumes
from feed_tracker.domain.preferences import Preferences
from feed_tracker.domain.storage import StorageConfiguration


class PreferencesRepository(Protocol):
    """Persistence interface for preferences."""

    def load(self) -> Preferences | None:
        """Return saved preferences, or None if nothing was saved yet."""

    def save(self, preferences: Preferences) -> None:
        """Persist preferences."""


@dataclass
class PreferencesService:
    """Service for reading and updating preferences."""

    repository: PreferencesRepository
    defaults: Preferences = field(default_factory=Preferences)

    def get(self) -> Preferences:
        """Return saved preferences or the defaults."""
        return self.repository.load() or self.defaults

    def update(self, **changes: object) -> Preferences:
        """Apply and persist changes, validating them first."""
        current = self.get()
        updated = Preferences.model_validate({**current.model_dump(), **changes})
        self.repository.save(updated)
        return updated

    def formula_types(self) -> list[str]:
        return parse_csv_list(self.get().formula_types)

    def feed_quick_volumes(self) -> list[int]:
        return parse_quick_volumes(self.get().feed_quick_volumes)

    def pumping_quick_volumes(self) -> list[int]:
        return parse_quick_volumes(self.get().pumping_quick_volumes)

    def default_formula_type(self) -> str | None:
        """Return the last used formula if still listed, else the first one."""
        types = self.formula_types()
        last_used = self.get().last_used_formula_type
        if last_used and last_used in types:
            return last_used
        return types[0] if types else None

    def remember_formula_type(self, formula_type: str) -> None:
        self.update(last_used_formula_type=formula_type)

    def storage_configuration(self) -> StorageConfiguration | None:
        """Return the selected spreadsheet, if one is set."""
        preferences = self.get()
        if not preferences.spreadsheet_id:
            return None
        return StorageConfiguration(
            identifier=preferences.spreadsheet_id,
            name=preferences.spreadsheet_name,
        )

    def set_storage_configuration(self, config: StorageConfiguration) -> None:
        """Persist the selected spreadsheet."""
        self.update(spreadsheet_id=config.identifier, spreadsheet_name=config.name)
