"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from feed_tracker.adapters.google_auth_provider import GoogleOAuthSignInProvider
from feed_tracker.adapters.json_preferences_repository import (
    JsonFilePreferencesRepository,
)
from feed_tracker.adapters.sheets_client import HttpxSheetsClient
from feed_tracker.config import Settings
from feed_tracker.domain.preferences import Preferences
from feed_tracker.domain.storage import StorageConfiguration
from feed_tracker.services.auth import TokenManager
from feed_tracker.services.cache import InMemoryCache
from feed_tracker.services.preferences import PreferencesService
from feed_tracker.services.storage import GoogleSheetsStorageService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    token_manager: TokenManager
    preferences_service: PreferencesService
    storage_service: GoogleSheetsStorageService
    close_resources: Callable[[], Awaitable[None]]


def default_preferences(settings: Settings) -> Preferences:
    """Preferences used until the user saves their own."""
    return Preferences(
        spreadsheet_id=settings.spreadsheet_id,
        spreadsheet_name=settings.spreadsheet_name,
        daily_volume_goal=settings.daily_volume_goal,
        formula_types=settings.formula_types,
        feed_quick_volumes=settings.feed_quick_volumes,
        pumping_quick_volumes=settings.pumping_quick_volumes,
        haptic_feedback_enabled=settings.haptic_feedback_enabled,
        drag_speed=settings.drag_speed,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    preferences_service = PreferencesService(
        repository=JsonFilePreferencesRepository(
            Path(resolved_settings.preferences_path)
        ),
        defaults=default_preferences(resolved_settings),
    )
    sign_in_provider = GoogleOAuthSignInProvider.create(
        client_id=resolved_settings.google_client_id,
        client_secret=resolved_settings.google_client_secret,
        refresh_token=resolved_settings.google_refresh_token,
        token_uri=resolved_settings.google_token_uri,
        userinfo_url=resolved_settings.userinfo_url,
        timeout_seconds=resolved_settings.request_timeout_seconds,
    )
    token_manager = TokenManager(
        provider=sign_in_provider,
        refresh_threshold_seconds=resolved_settings.token_refresh_threshold_seconds,
        max_attempts=resolved_settings.token_refresh_attempts,
        base_delay_seconds=resolved_settings.token_refresh_base_delay_seconds,
    )
    sheets_client = HttpxSheetsClient.create(
        sheets_base_url=resolved_settings.sheets_base_url,
        drive_base_url=resolved_settings.drive_base_url,
        timeout_seconds=resolved_settings.request_timeout_seconds,
    )
    storage_service = GoogleSheetsStorageService(
        sheets_client=sheets_client,
        token_manager=token_manager,
        cache=InMemoryCache(max_age_seconds=resolved_settings.cache_max_age_seconds),
        configuration=preferences_service.storage_configuration(),
    )

    async def close_resources() -> None:
        await sheets_client.close()
        await sign_in_provider.close()

    return AppContainer(
        settings=resolved_settings,
        token_manager=token_manager,
        preferences_service=preferences_service,
        storage_service=storage_service,
        close_resources=close_resources,
    )


def select_storage(container: AppContainer, config: StorageConfiguration) -> None:
    """Switch spreadsheets and remember the choice."""
    container.storage_service.update_configuration(config)
    container.preferences_service.set_storage_configuration(config)
