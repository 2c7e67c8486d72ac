# tests/test_auth.py

from __future__ import annotations

import json

import pytest

from game_schedule.auth.session import DEFAULT_PASSWORD, AuthGate
from game_schedule.storage.local_cache import SESSION_KEY, LocalCacheStore

from .fakes import ManualClock


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def auth(cache: LocalCacheStore, clock: ManualClock) -> AuthGate:
    return AuthGate(cache, clock=clock)


def test_default_password_after_failures_then_session_expires(
    auth: AuthGate, cache: LocalCacheStore, clock: ManualClock
) -> None:
    assert not auth.has_custom_password()

    assert auth.authenticate("wrong") is False
    assert auth.authenticate("also wrong") is False
    assert cache.get_item(SESSION_KEY) is None

    assert auth.authenticate("admin123") is True
    stamp = json.loads(cache.get_item(SESSION_KEY) or "{}")
    assert stamp["timestamp"] == int(clock.now * 1000)
    assert auth.is_authenticated()

    clock.advance(24 * 60 * 60 + 1)

    assert auth.is_authenticated() is False
    assert cache.get_item(SESSION_KEY) is None


def test_session_valid_at_exactly_24_hours(auth: AuthGate, clock: ManualClock) -> None:
    assert auth.authenticate(DEFAULT_PASSWORD)
    clock.advance(24 * 60 * 60)
    assert auth.is_authenticated()


def test_custom_password_replaces_default(auth: AuthGate) -> None:
    auth.set_password("hunter2")

    assert auth.has_custom_password()
    assert auth.authenticate(DEFAULT_PASSWORD) is False
    assert not auth.is_authenticated()
    assert auth.authenticate("hunter2") is True


def test_wrong_password_keeps_existing_session(auth: AuthGate, cache: LocalCacheStore) -> None:
    assert auth.authenticate(DEFAULT_PASSWORD)
    before = cache.get_item(SESSION_KEY)

    assert auth.authenticate("nope") is False
    assert cache.get_item(SESSION_KEY) == before
    assert auth.is_authenticated()


def test_logout_and_corrupt_stamp(auth: AuthGate, cache: LocalCacheStore) -> None:
    assert auth.authenticate(DEFAULT_PASSWORD)
    auth.logout()
    assert not auth.is_authenticated()

    cache.set_item(SESSION_KEY, "garbage")
    assert not auth.is_authenticated()
    assert cache.get_item(SESSION_KEY) is None


def test_empty_password_cannot_be_set(auth: AuthGate) -> None:
    with pytest.raises(ValueError):
        auth.set_password("")
