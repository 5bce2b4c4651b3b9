"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from feed_tracker.domain.preferences import (
    DEFAULT_DAILY_VOLUME_GOAL,
    DEFAULT_FORMULA_TYPES,
    DEFAULT_QUICK_VOLUMES,
    DEFAULT_SPREADSHEET_NAME,
    DragSpeed,
)

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    google_client_id: str
    google_client_secret: str
    google_refresh_token: str | None = None
    google_token_uri: str = "https://oauth2.googleapis.com/token"
    userinfo_url: str = "https://openidconnect.googleapis.com/v1/userinfo"
    sheets_base_url: str = "https://sheets.googleapis.com/v4"
    drive_base_url: str = "https://www.googleapis.com/drive/v3"
    spreadsheet_id: str | None = None
    spreadsheet_name: str = DEFAULT_SPREADSHEET_NAME
    request_timeout_seconds: float = 15
    cache_max_age_seconds: float = 300
    token_refresh_threshold_seconds: float = 600
    token_refresh_attempts: int = 3
    token_refresh_base_delay_seconds: float = 1.0
    preferences_path: str = "feed_tracker_preferences.json"
    daily_volume_goal: int = DEFAULT_DAILY_VOLUME_GOAL
    formula_types: str = DEFAULT_FORMULA_TYPES
    feed_quick_volumes: str = DEFAULT_QUICK_VOLUMES
    pumping_quick_volumes: str = DEFAULT_QUICK_VOLUMES
    haptic_feedback_enabled: bool = True
    drag_speed: DragSpeed = DragSpeed.DEFAULT
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="FEED_TRACKER_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_csv_list(raw: str | None) -> list[str]:
    """Split a comma-joined setting into trimmed, non-empty items."""
    if raw is None:
        return []
    return [chunk.strip() for chunk in raw.split(",") if chunk.strip()]


def parse_quick_volumes(raw: str | None) -> list[int]:
    """Parse quick-volume presets, skipping anything that is not a positive int."""
    volumes: list[int] = []
    for value in parse_csv_list(raw):
        if value.isdigit() and int(value) > 0:
            volumes.append(int(value))
    return volumes
