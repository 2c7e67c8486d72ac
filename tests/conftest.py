# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from game_schedule.storage.gateway import DatabaseGateway
from game_schedule.storage.local_cache import LocalCacheStore
from game_schedule.storage.remote_client import SupabaseRestClient

from .fakes import FakePostgrest


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with cli.bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment (no remote backend).
    """
    return SimpleNamespace(
        app_name="game-schedule-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        cache_db_path=tmp_path / "cache.sqlite3",
        supabase_url=None,
        supabase_anon_key=None,
        remote_configured=False,
        remote_timeout_seconds=1.0,
        realtime_poll_seconds=0.01,
    )


@pytest.fixture()
def cache(tmp_path: Path) -> LocalCacheStore:
    return LocalCacheStore(tmp_path / "cache.sqlite3")


@pytest.fixture()
def server() -> FakePostgrest:
    return FakePostgrest()


@pytest.fixture()
def remote_client(server: FakePostgrest) -> SupabaseRestClient:
    return SupabaseRestClient("https://demo.supabase.co", "anon-key", transport=server.transport())


@pytest.fixture()
def local_gateway(cache: LocalCacheStore) -> DatabaseGateway:
    """Gateway in local-only mode (no remote configured)."""
    return DatabaseGateway(cache)


@pytest.fixture()
def remote_gateway(cache: LocalCacheStore, remote_client: SupabaseRestClient) -> DatabaseGateway:
    return DatabaseGateway(cache, remote_client, poll_interval=0.01)
