"""JSON file repository for preferences."""

import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from feed_tracker.domain.preferences import Preferences
from feed_tracker.services.preferences import PreferencesRepository

_logger = logging.getLogger(__name__)


@dataclass
class JsonFilePreferencesRepository(PreferencesRepository):
    """Stores preferences as a JSON document on disk."""

    path: Path

    def load(self) -> Preferences | None:
        """Return saved preferences; unreadable files count as unsaved."""
        if not self.path.exists():
            return None
        try:
            return Preferences.model_validate_json(self.path.read_text("utf-8"))
        except ValidationError:
            _logger.warning("Ignoring invalid preferences file %s", self.path)
            return None

    def save(self, preferences: Preferences) -> None:
        """Write preferences atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(preferences.model_dump_json(indent=2), "utf-8")
        tmp_path.replace(self.path)
