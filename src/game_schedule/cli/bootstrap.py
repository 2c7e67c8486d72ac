# src/game_schedule/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the local cache, the optional remote client, the gateway,
  the auth gate and the app store together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..auth.session import AuthGate
from ..config import get_settings
from ..core.ports import RemoteClient
from ..core.state import AppStore
from ..storage.gateway import DatabaseGateway
from ..storage.local_cache import LocalCacheStore
from ..storage.remote_client import SupabaseRestClient

logger = logging.getLogger(__name__)


@dataclass
class AdminContext:
    settings: object
    store: AppStore
    auth: AuthGate


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.cache_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_remote_client(settings) -> RemoteClient | None:
    """Remote client when both URL and key are set, otherwise None (local-only mode)."""
    if not getattr(settings, "remote_configured", False):
        logger.warning("Supabase settings are incomplete. Running in local-only mode.")
        return None

    try:
        return SupabaseRestClient(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout_seconds=float(getattr(settings, "remote_timeout_seconds", 10.0)),
        )
    except RuntimeError:
        logger.exception("Failed to create the remote client. Running in local-only mode.")
        return None


def create_context(*, settings=None, remote: RemoteClient | None = None) -> AdminContext:
    """
    Build the admin context from the provided settings.

    If settings is None, falls back to get_settings(). A remote client may be
    injected (tests); otherwise one is created from settings when configured.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    cache = LocalCacheStore(settings.cache_db_path)
    if remote is None:
        remote = create_remote_client(settings)

    gateway = DatabaseGateway(
        cache,
        remote,
        poll_interval=float(getattr(settings, "realtime_poll_seconds", 5.0)),
    )
    return AdminContext(
        settings=settings,
        store=AppStore(gateway),
        auth=AuthGate(cache),
    )
