# src/game_schedule/auth/session.py

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable

from ..core.ports import ProjectCache
from ..storage.local_cache import SESSION_KEY

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = "admin123"
SESSION_DURATION_SECONDS = 24 * 60 * 60


class AuthGate:
    """
    Single shared admin password + time-boxed session flag.

    The session is a {"timestamp": <epoch ms>} document in the local cache.
    Passwords are compared as plain text (single low-stakes shared secret).
    """

    def __init__(
        self,
        cache: ProjectCache,
        *,
        clock: Callable[[], float] = time.time,
        session_duration: float = SESSION_DURATION_SECONDS,
    ) -> None:
        self._cache = cache
        self._clock = clock
        self._session_duration = float(session_duration)

    def default_password(self) -> str:
        return DEFAULT_PASSWORD

    def has_custom_password(self) -> bool:
        return self._cache.get_admin_password() is not None

    def set_password(self, password: str) -> None:
        if not password:
            raise ValueError("password is required")
        self._cache.set_admin_password(password)
        logger.info("Admin password changed.")

    def authenticate(self, password: str) -> bool:
        stored = self._cache.get_admin_password() or DEFAULT_PASSWORD
        if password != stored:
            logger.info("Admin login rejected.")
            return False

        self.create_session()
        logger.info("Admin login accepted.")
        return True

    def create_session(self) -> None:
        stamp = int(self._clock() * 1000)
        self._cache.set_item(SESSION_KEY, json.dumps({"timestamp": stamp}))

    def session_timestamp(self) -> float | None:
        """Session start in epoch seconds, or None when there is no readable stamp."""
        raw = self._cache.get_item(SESSION_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return float(data["timestamp"]) / 1000.0
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning("Session stamp is unreadable; clearing it.")
            self.logout()
            return None

    def is_authenticated(self) -> bool:
        started = self.session_timestamp()
        if started is None:
            return False

        if self._clock() - started > self._session_duration:
            logger.info("Admin session expired.")
            self.logout()
            return False
        return True

    def logout(self) -> None:
        self._cache.remove_item(SESSION_KEY)
