# src/game_schedule/storage/local_cache.py

from __future__ import annotations

import contextlib
import json
import logging
import secrets
import sqlite3
import string
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.models import Project, project_from_dict, project_to_dict
from ..errors import NoProjectError, ProjectDataError

logger = logging.getLogger(__name__)

SHARE_ID_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
SHARE_ID_LENGTH = 12

OWNER_ID_KEY = "game-schedule-owner-id"
SESSION_KEY = "game-schedule-admin-session"


@dataclass(frozen=True, slots=True)
class StorageKeys:
    project: str
    settings: str
    admin_password: str

    def all(self) -> tuple[str, ...]:
        return (self.project, self.settings, self.admin_password)


PRIMARY_KEYS = StorageKeys(
    project="game-schedule-project",
    settings="game-schedule-settings",
    admin_password="game-schedule-admin-password",
)

# Used alongside the primary set when a remote backend is configured.
FALLBACK_KEYS = StorageKeys(
    project="game-schedule-project-fallback",
    settings="game-schedule-settings-fallback",
    admin_password="game-schedule-admin-password-fallback",
)


def generate_share_id() -> str:
    """
    12 characters from [A-Za-z0-9], uniform per character.

    Collisions are not checked here (62**12 space); uniqueness, if any,
    is up to the remote backend.
    """
    return "".join(secrets.choice(SHARE_ID_ALPHABET) for _ in range(SHARE_ID_LENGTH))


class LocalCacheStore:
    """
    Durable key-value cache on the local machine (SQLite).

    Stands in for browser local storage: one Project document, a settings blob,
    an admin password override and a few bookkeeping keys.

    Every operation is best-effort: storage errors are logged and callers
    get None / a no-op instead of an exception.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "cache.sqlite3", *, keys: StorageKeys = PRIMARY_KEYS) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.keys = keys
        self._ensure_schema()
        logger.info("LocalCacheStore ready db=%s keys=%s", self._db_path, self.keys.project)

    def with_keys(self, keys: StorageKeys) -> LocalCacheStore:
        """Same database file, different key set."""
        return LocalCacheStore(self._db_path, keys=keys)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    # ---- raw key-value API ----

    def get_item(self, key: str) -> str | None:
        try:
            conn = self._get_conn()
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
                return str(row["value"]) if row else None
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Failed to read key=%s", key)
            return None

    def set_item(self, key: str, value: str) -> None:
        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (key, value, time.time()),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Failed to write key=%s", key)

    def remove_item(self, key: str) -> None:
        try:
            conn = self._get_conn()
            try:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception("Failed to remove key=%s", key)

    # ---- project ----

    def save_project(self, project: Project) -> None:
        try:
            serialized = json.dumps(project_to_dict(project), ensure_ascii=False)
        except (TypeError, ValueError):
            logger.exception("Failed to serialize project id=%s", project.id)
            return
        self.set_item(self.keys.project, serialized)
        logger.debug("Project cached id=%s tasks=%d", project.id, len(project.tasks))

    def load_project(self) -> Project | None:
        stored = self.get_item(self.keys.project)
        if not stored:
            return None
        try:
            return project_from_dict(json.loads(stored))
        except (json.JSONDecodeError, ProjectDataError):
            logger.exception("Cached project is unreadable; treating as absent.")
            return None

    # ---- settings / admin password ----

    def save_settings(self, settings: dict[str, Any]) -> None:
        try:
            self.set_item(self.keys.settings, json.dumps(settings, ensure_ascii=False))
        except (TypeError, ValueError):
            logger.exception("Failed to serialize settings")

    def load_settings(self) -> dict[str, Any] | None:
        stored = self.get_item(self.keys.settings)
        if not stored:
            return None
        try:
            val = json.loads(stored)
        except json.JSONDecodeError:
            logger.exception("Cached settings are unreadable; treating as absent.")
            return None
        return val if isinstance(val, dict) else None

    def set_admin_password(self, password: str) -> None:
        self.set_item(self.keys.admin_password, password)

    def get_admin_password(self) -> str | None:
        return self.get_item(self.keys.admin_password)

    # ---- export / import ----

    def export_project(self) -> str:
        project = self.load_project()
        if project is None:
            raise NoProjectError("No project to export")
        return json.dumps(project_to_dict(project), ensure_ascii=False, indent=2)

    def import_project(self, text: str) -> Project:
        try:
            project = project_from_dict(json.loads(text))
        except (json.JSONDecodeError, TypeError) as e:
            raise ProjectDataError("Invalid project data") from e
        self.save_project(project)
        return project

    def generate_share_id(self) -> str:
        return generate_share_id()

    def clear_all(self) -> None:
        for key in self.keys.all():
            self.remove_item(key)
        logger.info("Local cache cleared keys=%s", ", ".join(self.keys.all()))
