"""Tests for the token manager."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from feed_tracker.domain.auth import AuthState, Credential
from feed_tracker.domain.errors import (
    AuthenticationFailedError,
    ConfigurationInvalidError,
    NotSignedInError,
)
from feed_tracker.services.auth import TokenManager
from tests.conftest import FakeSignInProvider, RecordingSleep, fresh_credential


def _expiring_credential(seconds: int) -> Credential:
    return Credential(
        access_token="old-token",
        expiry=datetime.now(tz=UTC) + timedelta(seconds=seconds),
    )


def test_sign_in_updates_state(
    sign_in_provider: FakeSignInProvider, recording_sleep: RecordingSleep
) -> None:
    manager = TokenManager(provider=sign_in_provider, sleep=recording_sleep)
    assert not manager.is_signed_in

    asyncio.run(manager.sign_in())

    assert manager.is_signed_in
    assert manager.state == AuthState.SIGNED_IN
    assert manager.user_email == "parent@example.com"


def test_sign_in_failure_is_wrapped() -> None:
    provider = FakeSignInProvider(sign_in_error=RuntimeError("user cancelled"))
    manager = TokenManager(provider=provider)

    with pytest.raises(AuthenticationFailedError) as exc_info:
        asyncio.run(manager.sign_in())

    assert isinstance(exc_info.value.cause, RuntimeError)
    assert manager.state == AuthState.SIGNED_OUT
    assert manager.user_email is None


def test_sign_in_configuration_error_passes_through() -> None:
    provider = FakeSignInProvider(sign_in_error=ConfigurationInvalidError())
    manager = TokenManager(provider=provider)

    with pytest.raises(ConfigurationInvalidError):
        asyncio.run(manager.sign_in())


def test_sign_out_clears_state(
    token_manager: TokenManager, sign_in_provider: FakeSignInProvider
) -> None:
    asyncio.run(token_manager.sign_out())

    assert not token_manager.is_signed_in
    assert token_manager.user_email is None
    assert sign_in_provider.signed_out


def test_access_token_without_session_raises() -> None:
    manager = TokenManager(provider=FakeSignInProvider())

    with pytest.raises(NotSignedInError):
        asyncio.run(manager.access_token())


def test_access_token_skips_refresh_for_fresh_token(
    token_manager: TokenManager, sign_in_provider: FakeSignInProvider
) -> None:
    token = asyncio.run(token_manager.access_token())

    assert token == "token-0"
    assert sign_in_provider.refresh_calls == 0


def test_access_token_refreshes_near_expiry(
    token_manager: TokenManager, sign_in_provider: FakeSignInProvider
) -> None:
    sign_in_provider.credential = _expiring_credential(120)

    token = asyncio.run(token_manager.access_token())

    assert token == "token-1"
    assert sign_in_provider.refresh_calls == 1


def test_refresh_succeeds_on_third_attempt_after_backoff(
    token_manager: TokenManager,
    sign_in_provider: FakeSignInProvider,
    recording_sleep: RecordingSleep,
) -> None:
    sign_in_provider.refresh_failures = 2

    credential = asyncio.run(token_manager.refresh_with_retry())

    assert credential.access_token == "token-3"
    assert sign_in_provider.refresh_calls == 3
    assert recording_sleep.delays == [1.0, 2.0]
    assert recording_sleep.total == pytest.approx(3.0)
    assert token_manager.state == AuthState.SIGNED_IN


def test_refresh_gives_up_after_max_attempts(
    token_manager: TokenManager,
    sign_in_provider: FakeSignInProvider,
    recording_sleep: RecordingSleep,
) -> None:
    sign_in_provider.refresh_failures = 5

    with pytest.raises(AuthenticationFailedError) as exc_info:
        asyncio.run(token_manager.refresh_with_retry())

    assert isinstance(exc_info.value.cause, RuntimeError)
    assert sign_in_provider.refresh_calls == 3
    assert recording_sleep.delays == [1.0, 2.0]
    assert token_manager.state == AuthState.TOKEN_STALE
    assert token_manager.is_signed_in


def test_revoked_grant_signs_out(
    token_manager: TokenManager, sign_in_provider: FakeSignInProvider
) -> None:
    sign_in_provider.revoked = True

    with pytest.raises(AuthenticationFailedError):
        asyncio.run(token_manager.refresh_with_retry())

    assert sign_in_provider.refresh_calls == 1
    assert token_manager.state == AuthState.SIGNED_OUT


def test_revoked_grant_blocks_later_token_requests(
    token_manager: TokenManager, sign_in_provider: FakeSignInProvider
) -> None:
    sign_in_provider.revoked = True
    with pytest.raises(AuthenticationFailedError):
        asyncio.run(token_manager.access_token(force_refresh=True))

    with pytest.raises(NotSignedInError):
        asyncio.run(token_manager.access_token())
    with pytest.raises(NotSignedInError):
        asyncio.run(token_manager.access_token(force_refresh=True))

    assert sign_in_provider.refresh_calls == 1


def test_backoff_sleep_is_cancellable(
    sign_in_provider: FakeSignInProvider,
) -> None:
    sign_in_provider.credential = fresh_credential()
    sign_in_provider.refresh_failures = 3
    manager = TokenManager(
        provider=sign_in_provider, base_delay_seconds=60.0, sleep=asyncio.sleep
    )

    async def run() -> None:
        task = asyncio.create_task(manager.refresh_with_retry())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())

    assert sign_in_provider.refresh_calls == 1
    assert manager.state == AuthState.TOKEN_STALE


def test_foreground_check_refreshes_stale_token(
    token_manager: TokenManager, sign_in_provider: FakeSignInProvider
) -> None:
    sign_in_provider.credential = _expiring_credential(300)

    asyncio.run(token_manager.validate_and_refresh_if_needed())

    assert sign_in_provider.refresh_calls == 1
    assert token_manager.last_error is None


def test_foreground_check_leaves_fresh_token(
    token_manager: TokenManager, sign_in_provider: FakeSignInProvider
) -> None:
    asyncio.run(token_manager.validate_and_refresh_if_needed())

    assert sign_in_provider.refresh_calls == 0


def test_foreground_check_records_failure(
    token_manager: TokenManager, sign_in_provider: FakeSignInProvider
) -> None:
    sign_in_provider.credential = _expiring_credential(-10)
    sign_in_provider.refresh_failures = 3

    asyncio.run(token_manager.validate_and_refresh_if_needed())

    assert isinstance(token_manager.last_error, AuthenticationFailedError)


def test_foreground_check_without_session_signs_out() -> None:
    manager = TokenManager(provider=FakeSignInProvider())

    asyncio.run(manager.validate_and_refresh_if_needed())

    assert manager.state == AuthState.SIGNED_OUT


def test_restore_previous_sign_in(recording_sleep: RecordingSleep) -> None:
    provider = FakeSignInProvider(restorable=True)
    manager = TokenManager(provider=provider, sleep=recording_sleep)

    assert asyncio.run(manager.restore_previous_sign_in()) is True
    assert manager.is_signed_in
    assert manager.user_email == "parent@example.com"


def test_restore_without_saved_session() -> None:
    manager = TokenManager(provider=FakeSignInProvider())

    assert asyncio.run(manager.restore_previous_sign_in()) is False
    assert not manager.is_signed_in
