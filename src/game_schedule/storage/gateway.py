# src/game_schedule/storage/gateway.py

from __future__ import annotations

"""
Remote database gateway.

Mirrors the local cache API against the remote tables (projects 1-N tasks).
Every remote operation has a silent downgrade path to the local cache, so the
app keeps working with no backend configured ("local-only" mode) or while the
backend is failing.
"""

import functools
import json
import logging
import secrets
import string
import time
from collections.abc import Awaitable, Callable, Hashable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeVar

from ..core.models import (
    Project,
    project_from_dict,
    project_from_rows,
    project_to_dict,
    project_to_row,
    task_to_row,
)
from ..core.ports import RemoteClient
from ..errors import NoProjectError, ProjectDataError, RemoteError
from .local_cache import FALLBACK_KEYS, OWNER_ID_KEY, LocalCacheStore, generate_share_id
from .realtime import ProjectCallback, ProjectSubscription

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROJECTS_TABLE = "projects"
TASKS_TABLE = "tasks"

_BASE36 = string.digits + string.ascii_lowercase


class Backend(StrEnum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True, slots=True)
class SaveOutcome:
    """Which backend ultimately served a write (error is set when remote was tried and failed)."""

    backend: Backend
    error: str | None = None

    @property
    def fell_back(self) -> bool:
        return self.backend == Backend.LOCAL and self.error is not None


class DatabaseGateway:
    def __init__(
        self,
        cache: LocalCacheStore,
        remote: RemoteClient | None = None,
        *,
        poll_interval: float = 5.0,
    ) -> None:
        self._cache = cache
        self._remote = remote
        self._poll_interval = poll_interval
        # Settings and the password override also go under the fallback key set
        # when a backend is configured; the primary set is always written too.
        self._fallback = cache.with_keys(FALLBACK_KEYS) if remote is not None else None

        if remote is None:
            logger.info("DatabaseGateway in local-only mode.")
        else:
            logger.info("DatabaseGateway using remote backend (poll=%.2fs).", poll_interval)

    @property
    def is_remote_available(self) -> bool:
        return self._remote is not None

    @property
    def cache(self) -> LocalCacheStore:
        return self._cache

    async def aclose(self) -> None:
        if self._remote is not None:
            await self._remote.aclose()

    # ---- helpers ----

    async def _attempt(self, label: str, op: Callable[[], Awaitable[T]]) -> tuple[T | None, str | None]:
        """
        Run one remote operation. Returns (value, None) on success or
        (None, error text) on failure; failures are logged, never raised.
        """
        try:
            return await op(), None
        except (RemoteError, ProjectDataError, KeyError, TypeError, ValueError) as e:
            msg = str(e) or e.__class__.__name__
            logger.warning("Remote %s failed (%s); falling back to local cache.", label, msg)
            return None, msg

    def owner_id(self) -> str:
        """
        Per-device owner identifier (stands in for real user auth).
        Created on first use and persisted in the local cache.
        """
        owner = self._cache.get_item(OWNER_ID_KEY)
        if not owner:
            suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
            owner = f"owner_{int(time.time() * 1000)}_{suffix}"
            self._cache.set_item(OWNER_ID_KEY, owner)
            logger.info("Generated owner id %s", owner)
        return owner

    def generate_share_id(self) -> str:
        return generate_share_id()

    async def _fetch_project(
        self,
        remote: RemoteClient,
        filters: Mapping[str, Any],
        *,
        order: str | None = None,
    ) -> Project | None:
        rows = await remote.select(PROJECTS_TABLE, filters=filters, order=order, limit=1)
        if not rows:
            return None
        project_row = rows[0]
        task_rows = await remote.select(
            TASKS_TABLE,
            filters={"project_id": project_row["id"]},
            order="created_at.asc",
        )
        return project_from_rows(project_row, task_rows)

    async def _save_remote(self, remote: RemoteClient, project: Project) -> None:
        await remote.upsert(PROJECTS_TABLE, [project_to_row(project, owner_id=self.owner_id())])
        # Replace-all: no per-task dirty tracking.
        await remote.delete(TASKS_TABLE, filters={"project_id": project.id})
        if project.tasks:
            await remote.insert(
                TASKS_TABLE,
                [task_to_row(t, project_id=project.id) for t in project.tasks],
            )

    # ---- project ----

    async def save_project(self, project: Project) -> SaveOutcome:
        outcome = SaveOutcome(Backend.LOCAL)
        remote = self._remote
        if remote is not None:
            _, error = await self._attempt("save_project", lambda: self._save_remote(remote, project))
            outcome = SaveOutcome(Backend.REMOTE) if error is None else SaveOutcome(Backend.LOCAL, error)

        # Local mirror is written on every path.
        self._cache.save_project(project)
        logger.debug(
            "Project saved id=%s tasks=%d backend=%s",
            project.id,
            len(project.tasks),
            outcome.backend.value,
        )
        return outcome

    async def load_project(self) -> Project | None:
        remote = self._remote
        if remote is None:
            return self._cache.load_project()

        owner = self.owner_id()
        project, _ = await self._attempt(
            "load_project",
            lambda: self._fetch_project(remote, {"owner_id": owner}, order="updated_at.desc"),
        )
        if project is None:
            return self._cache.load_project()

        self._cache.save_project(project)
        return project

    async def load_project_by_share_id(self, share_id: str) -> Project | None:
        if not share_id:
            return None

        remote = self._remote
        if remote is None:
            project = self._cache.load_project()
            return project if project is not None and project.share_id == share_id else None

        project, _ = await self._attempt(
            "load_project_by_share_id",
            lambda: self._fetch_project(remote, {"share_id": share_id}),
        )
        return project

    # ---- live updates ----

    async def _change_fingerprint(self, remote: RemoteClient, project_id: str) -> Hashable:
        project_rows = await remote.select(
            PROJECTS_TABLE, filters={"id": project_id}, columns="id,updated_at"
        )
        task_rows = await remote.select(
            TASKS_TABLE, filters={"project_id": project_id}, columns="id,updated_at"
        )
        return (
            tuple(sorted((str(r.get("id")), str(r.get("updated_at"))) for r in project_rows)),
            tuple(sorted((str(r.get("id")), str(r.get("updated_at"))) for r in task_rows)),
        )

    def subscribe_to_project(
        self,
        project_id: str,
        callback: ProjectCallback,
        *,
        share_id: str | None = None,
    ) -> ProjectSubscription | None:
        """
        Start listening for changes on both tables for this project.
        Returns a handle to cancel, or None in local-only mode.

        A project opened by share id is reloaded by that share id; otherwise
        the reload is this device's own latest project.
        """
        remote = self._remote
        if remote is None:
            return None

        reload = functools.partial(self.load_project_by_share_id, share_id) if share_id else self.load_project

        sub = ProjectSubscription(
            project_id=project_id,
            fingerprint=lambda: self._change_fingerprint(remote, project_id),
            reload=reload,
            callback=callback,
            poll_interval=self._poll_interval,
        )
        try:
            sub.start()
        except RuntimeError:
            logger.warning("No running event loop; live updates disabled for project id=%s", project_id)
            return None
        return sub

    async def migrate_from_local_storage(self) -> SaveOutcome | None:
        """One-time best-effort copy of the cached project to the remote store."""
        if self._remote is None:
            return None

        local_project = self._cache.load_project()
        if local_project is None:
            return None

        outcome = await self.save_project(local_project)
        if outcome.backend == Backend.REMOTE:
            logger.info("Migrated cached project id=%s to the remote backend.", local_project.id)
        else:
            logger.warning("Migration of project id=%s did not reach the remote backend.", local_project.id)
        return outcome

    # ---- settings / admin password ----

    def save_settings(self, settings: dict[str, Any]) -> None:
        if self._fallback is not None:
            self._fallback.save_settings(settings)
        self._cache.save_settings(settings)

    def load_settings(self) -> dict[str, Any] | None:
        if self._fallback is not None:
            settings = self._fallback.load_settings()
            if settings is not None:
                return settings
        return self._cache.load_settings()

    def set_admin_password(self, password: str) -> None:
        if self._fallback is not None:
            self._fallback.set_admin_password(password)
        self._cache.set_admin_password(password)

    def get_admin_password(self) -> str | None:
        if self._fallback is not None:
            password = self._fallback.get_admin_password()
            if password is not None:
                return password
        return self._cache.get_admin_password()

    # ---- export / import ----

    async def export_project(self) -> str:
        project = await self.load_project()
        if project is None:
            raise NoProjectError("No project to export")
        return json.dumps(project_to_dict(project), ensure_ascii=False, indent=2)

    async def import_project(self, text: str) -> Project:
        try:
            project = project_from_dict(json.loads(text))
        except (json.JSONDecodeError, TypeError) as e:
            raise ProjectDataError("Invalid project data") from e

        await self.save_project(project)
        return project

    # ---- clear ----

    async def _clear_remote(self, remote: RemoteClient, owner: str) -> None:
        rows = await remote.select(PROJECTS_TABLE, filters={"owner_id": owner}, columns="id")
        for row in rows:
            await remote.delete(TASKS_TABLE, filters={"project_id": row["id"]})
        await remote.delete(PROJECTS_TABLE, filters={"owner_id": owner})

    async def clear_all(self) -> None:
        remote = self._remote
        if remote is not None:
            owner = self.owner_id()
            await self._attempt("clear_all", lambda: self._clear_remote(remote, owner))

        if self._fallback is not None:
            self._fallback.clear_all()
        self._cache.clear_all()
        self._cache.remove_item(OWNER_ID_KEY)
