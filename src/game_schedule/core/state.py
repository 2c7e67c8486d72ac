# src/game_schedule/core/state.py

from __future__ import annotations

"""
Application state store.

One explicit AppStore object (built in cli.bootstrap, no module-level singleton)
holds the current Project plus UI preferences and exposes the actions the
presentation layer calls.

Every mutating action follows the same protocol:
1. compute the next Project value,
2. write it to in-memory state (listeners see it immediately),
3. await the gateway save; the gateway never raises for backend failures,
   it downgrades to the local cache and reports the outcome. The live
   subscription is held during the save so our own write is not echoed back.

There is no rollback when the remote write fails.
"""

import contextlib
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from ..storage.gateway import DatabaseGateway, SaveOutcome
from ..storage.realtime import ProjectSubscription
from .models import (
    Category,
    NotificationSettings,
    Priority,
    Project,
    ProjectPatch,
    Task,
    TaskFormData,
    TaskPatch,
    TaskStatus,
    Theme,
    ViewType,
    clamp_progress,
    new_id,
    parse_iso,
    progress_for_status,
    status_for_progress,
    utcnow,
)

logger = logging.getLogger(__name__)

StateListener = Callable[["AppState"], None]


@dataclass
class AppState:
    project: Project | None = None
    is_admin_mode: bool = False
    current_view: ViewType = ViewType.DASHBOARD
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    theme: Theme = Theme.LIGHT


class AppStore:
    def __init__(
        self,
        gateway: DatabaseGateway,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.gateway = gateway
        self.state = AppState()
        self.subscription: ProjectSubscription | None = None
        # Outcome of the most recent persisted mutation (which backend served it).
        self.last_save: SaveOutcome | None = None
        self._listeners: list[StateListener] = []
        self._now = clock
        # Set when the current project was opened read-only through a share id.
        self._share_id: str | None = None

    @property
    def project(self) -> Project | None:
        return self.state.project

    # ---- listeners ----

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _set(self, **changes: Any) -> None:
        for name, value in changes.items():
            setattr(self.state, name, value)
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception:
                logger.exception("State listener failed.")

    async def _commit(self, project: Project) -> SaveOutcome:
        self._set(project=project)
        sub = self.subscription
        async with sub.hold() if sub is not None else contextlib.nullcontext():
            outcome = await self.gateway.save_project(project)
        self.last_save = outcome
        if outcome.fell_back:
            logger.info("Project id=%s saved locally only (%s).", project.id, outcome.error)
        return outcome

    def _settings_blob(self) -> dict[str, Any]:
        return {
            "notifications": self.state.notifications.to_dict(),
            "theme": self.state.theme.value,
        }

    # ---- simple setters ----

    async def set_project(self, project: Project | None) -> SaveOutcome | None:
        if project is None:
            self._set(project=None)
            return None
        return await self._commit(project)

    def set_admin_mode(self, is_admin: bool) -> None:
        self._set(is_admin_mode=bool(is_admin))

    def set_current_view(self, view: ViewType | str) -> None:
        self._set(current_view=ViewType(view))

    def set_theme(self, theme: Theme | str) -> None:
        self._set(theme=Theme(theme))
        self.gateway.save_settings(self._settings_blob())

    def set_notifications(self, notifications: NotificationSettings) -> None:
        self._set(notifications=notifications)
        self.gateway.save_settings(self._settings_blob())

    # ---- project actions ----

    async def create_project(self, name: str) -> SaveOutcome:
        name = (name or "").strip()
        if not name:
            raise ValueError("Project name is required")

        now = self._now()
        project = Project(id=new_id(), name=name, tasks=[], created_at=now, updated_at=now)
        logger.info("Creating project id=%s name=%s", project.id, name)
        self._share_id = None

        outcome = await self._commit(project)
        self.subscribe_to_project()
        return outcome

    async def update_project(self, patch: ProjectPatch | Mapping[str, Any]) -> SaveOutcome | None:
        if isinstance(patch, Mapping):
            patch = ProjectPatch.from_dict(patch)

        project = self.state.project
        if project is None:
            logger.warning("update_project ignored: no project loaded.")
            return None
        return await self._commit(patch.apply(project, now=self._now()))

    async def generate_share_id(self) -> str | None:
        """Generate (or regenerate) the share id and persist it."""
        if self.state.project is None:
            logger.warning("generate_share_id ignored: no project loaded.")
            return None
        share_id = self.gateway.generate_share_id()
        await self.update_project(ProjectPatch(share_id=share_id))
        return share_id

    async def load_project_by_share_id(self, share_id: str) -> Project | None:
        project = await self.gateway.load_project_by_share_id(share_id)
        if project is None:
            logger.info("No project for share id %s", share_id)
            return None

        self._share_id = share_id
        self._set(project=project)
        self.subscribe_to_project()
        return project

    # ---- task actions ----

    async def add_task(self, form: TaskFormData) -> SaveOutcome | None:
        project = self.state.project
        if project is None:
            logger.warning("add_task ignored: no project loaded.")
            return None
        if not form.title or not form.title.strip():
            raise ValueError("title is required")
        if not form.description or not form.description.strip():
            raise ValueError("description is required")
        if not form.deadline:
            raise ValueError("deadline is required")

        now = self._now()
        task = Task(
            id=new_id(),
            title=form.title.strip(),
            description=form.description.strip(),
            deadline=parse_iso(form.deadline),
            progress=0,
            priority=Priority(form.priority),
            category=Category(form.category),
            status=TaskStatus.NOT_STARTED,
            created_at=now,
            updated_at=now,
            notes=form.notes or None,
            image_url=form.image_url or None,
        )
        logger.debug("Adding task id=%s to project id=%s", task.id, project.id)
        return await self._commit(replace(project, tasks=[*project.tasks, task], updated_at=now))

    async def update_task(self, task_id: str, patch: TaskPatch | Mapping[str, Any]) -> SaveOutcome | None:
        if isinstance(patch, Mapping):
            patch = TaskPatch.from_dict(patch)

        project = self.state.project
        if project is None or project.find_task(task_id) is None:
            logger.debug("update_task ignored: unknown task id=%s", task_id)
            return None

        now = self._now()
        tasks = [patch.apply(t, now=now) if t.id == task_id else t for t in project.tasks]
        return await self._commit(replace(project, tasks=tasks, updated_at=now))

    async def delete_task(self, task_id: str) -> SaveOutcome | None:
        project = self.state.project
        if project is None or project.find_task(task_id) is None:
            logger.debug("delete_task ignored: unknown task id=%s", task_id)
            return None

        tasks = [t for t in project.tasks if t.id != task_id]
        return await self._commit(replace(project, tasks=tasks, updated_at=self._now()))

    async def update_task_progress(self, task_id: str, progress: int | float) -> SaveOutcome | None:
        p = clamp_progress(progress)
        return await self.update_task(task_id, TaskPatch(progress=p, status=status_for_progress(p)))

    async def update_task_status(self, task_id: str, status: TaskStatus | str) -> SaveOutcome | None:
        status = TaskStatus(status)
        return await self.update_task(
            task_id, TaskPatch(status=status, progress=progress_for_status(status))
        )

    # ---- loading / migration / import-export ----

    async def load_from_database(self) -> Project | None:
        project = await self.gateway.load_project()
        settings = self.gateway.load_settings() or {}

        if project is not None:
            self._share_id = None
            self._set(project=project)
            self.subscribe_to_project()

        notifications = settings.get("notifications")
        if isinstance(notifications, Mapping):
            self._set(notifications=NotificationSettings.from_dict(notifications))

        theme = settings.get("theme")
        if theme in (Theme.LIGHT.value, Theme.DARK.value):
            self._set(theme=Theme(theme))

        return project

    async def migrate_from_local_storage(self) -> None:
        await self.gateway.migrate_from_local_storage()
        await self.load_from_database()

    async def export_project(self) -> str:
        return await self.gateway.export_project()

    async def import_project(self, text: str) -> Project:
        project = await self.gateway.import_project(text)
        self._share_id = None
        self._set(project=project)
        self.subscribe_to_project()
        return project

    async def clear_all(self) -> None:
        # Cancel first so no callback lands on the wiped state.
        self.unsubscribe_from_project()
        await self.gateway.clear_all()
        self.state = AppState()
        self._share_id = None
        self._set()
        logger.info("All data cleared.")

    # ---- live updates ----

    def _on_remote_change(self, project: Project) -> None:
        current = self.state.project
        if current is not None and current.id == project.id and project.updated_at < current.updated_at:
            logger.debug("Older remote copy of project id=%s ignored.", project.id)
            return
        logger.debug("Remote change applied to project id=%s", project.id)
        self._set(project=project)

    def subscribe_to_project(self) -> ProjectSubscription | None:
        """
        Hold at most one live subscription. Subscribing again for the same
        project is a no-op; a different project replaces the old handle.
        """
        project = self.state.project
        if project is None or not self.gateway.is_remote_available:
            return None

        if self.subscription is not None:
            if self.subscription.project_id == project.id:
                return self.subscription
            self.unsubscribe_from_project()

        self.subscription = self.gateway.subscribe_to_project(
            project.id, self._on_remote_change, share_id=self._share_id
        )
        return self.subscription

    def unsubscribe_from_project(self) -> None:
        if self.subscription is None:
            return
        self.subscription.cancel()
        self.subscription = None

    async def aclose(self) -> None:
        sub = self.subscription
        self.unsubscribe_from_project()
        if sub is not None:
            await sub.wait_closed()
        await self.gateway.aclose()
