# src/game_schedule/core/models.py

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any

from ..errors import ProjectDataError

_UNSET: Any = object()


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Category(StrEnum):
    PLANNING = "planning"
    GRAPHICS = "graphics"
    PROGRAMMING = "programming"
    SOUND = "sound"
    OTHER = "other"


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Coupled with progress by convention:
    - done         <=> progress 100
    - not-started  <=> progress 0
    - in-progress  <=> progress strictly between (50 when the status is set directly)
    """

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class ViewType(StrEnum):
    DASHBOARD = "dashboard"
    GANTT = "gantt"
    CALENDAR = "calendar"
    KANBAN = "kanban"


class Theme(StrEnum):
    LIGHT = "light"
    DARK = "dark"


_PROGRESS_FOR_STATUS = {
    TaskStatus.NOT_STARTED: 0,
    TaskStatus.IN_PROGRESS: 50,
    TaskStatus.DONE: 100,
}


def clamp_progress(value: int | float) -> int:
    return int(max(0, min(100, round(value))))


def status_for_progress(progress: int | float) -> TaskStatus:
    p = clamp_progress(progress)
    if p == 100:
        return TaskStatus.DONE
    if p > 0:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.NOT_STARTED


def progress_for_status(status: TaskStatus | str) -> int:
    return _PROGRESS_FOR_STATUS[TaskStatus(status)]


# ---- time helpers ----


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def to_iso(dt: datetime) -> str:
    """Serialize as ISO-8601 in UTC (microseconds kept, so round-trips are exact)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def parse_iso(raw: Any) -> datetime:
    """Parse an ISO-8601 timestamp (or date) into an aware UTC datetime."""
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, date):
        dt = datetime(raw.year, raw.month, raw.day)
    elif isinstance(raw, str) and raw.strip():
        s = raw.strip()
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError as e:
            raise ProjectDataError(f"Invalid timestamp: {raw!r}") from e
    else:
        raise ProjectDataError(f"Invalid timestamp: {raw!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _enum(cls: type[StrEnum], raw: Any, field_name: str) -> Any:
    try:
        return cls(raw)
    except ValueError as e:
        raise ProjectDataError(f"Invalid {field_name}: {raw!r}") from e


# ---- domain types ----


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    deadline: datetime
    progress: int
    priority: Priority
    category: Category
    status: TaskStatus
    created_at: datetime
    updated_at: datetime

    notes: str | None = None
    image_url: str | None = None


@dataclass(slots=True)
class Project:
    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    tasks: list[Task] = field(default_factory=list)
    share_id: str | None = None

    def find_task(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None


@dataclass(slots=True)
class NotificationSettings:
    enabled: bool = True
    three_days_before: bool = True
    one_day_before: bool = True
    on_deadline: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {
            "enabled": self.enabled,
            "threeDaysBefore": self.three_days_before,
            "oneDayBefore": self.one_day_before,
            "onDeadline": self.on_deadline,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NotificationSettings:
        d = cls()
        return cls(
            enabled=bool(data.get("enabled", d.enabled)),
            three_days_before=bool(data.get("threeDaysBefore", d.three_days_before)),
            one_day_before=bool(data.get("oneDayBefore", d.one_day_before)),
            on_deadline=bool(data.get("onDeadline", d.on_deadline)),
        )


@dataclass(slots=True)
class TaskFormData:
    """What the task form hands to AppStore.add_task (already validated by the form)."""

    title: str
    description: str
    deadline: str | date | datetime
    priority: Priority | str = Priority.MEDIUM
    category: Category | str = Category.OTHER
    notes: str | None = None
    image_url: str | None = None


# ---- typed patches ----


@dataclass(frozen=True, slots=True)
class TaskPatch:
    """
    Partial task update. Fields left at the sentinel are not touched;
    notes/image_url may be set to None to clear them.
    """

    title: Any = _UNSET
    description: Any = _UNSET
    deadline: Any = _UNSET
    progress: Any = _UNSET
    priority: Any = _UNSET
    category: Any = _UNSET
    status: Any = _UNSET
    notes: Any = _UNSET
    image_url: Any = _UNSET

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaskPatch:
        allowed = {f.name for f in fields(cls)}
        unknown = set(data) - allowed
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        return cls(**dict(data))

    def changes(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            if v is _UNSET:
                continue
            if f.name in ("title", "description") and v is None:
                raise ValueError(f"{f.name} cannot be cleared")
            out[f.name] = v

        if "deadline" in out:
            if out["deadline"] is None:
                raise ValueError("deadline cannot be cleared")
            out["deadline"] = parse_iso(out["deadline"])
        if "progress" in out:
            out["progress"] = clamp_progress(out["progress"])
        if "priority" in out:
            out["priority"] = Priority(out["priority"])
        if "category" in out:
            out["category"] = Category(out["category"])
        if "status" in out:
            out["status"] = TaskStatus(out["status"])
        return out

    def apply(self, task: Task, *, now: datetime) -> Task:
        return replace(task, **self.changes(), updated_at=now)


@dataclass(frozen=True, slots=True)
class ProjectPatch:
    name: Any = _UNSET
    share_id: Any = _UNSET

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProjectPatch:
        allowed = {f.name for f in fields(cls)}
        unknown = set(data) - allowed
        if unknown:
            raise ValueError(f"Unknown project fields: {', '.join(sorted(unknown))}")
        return cls(**dict(data))

    def apply(self, project: Project, *, now: datetime) -> Project:
        changes: dict[str, Any] = {}
        if self.name is not _UNSET:
            if not self.name or not str(self.name).strip():
                raise ValueError("name is required")
            changes["name"] = str(self.name).strip()
        if self.share_id is not _UNSET:
            changes["share_id"] = self.share_id or None
        return replace(project, **changes, updated_at=now)


# ---- document codec (export/import and local cache) ----


def task_to_dict(task: Task) -> dict[str, Any]:
    d: dict[str, Any] = {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "deadline": to_iso(task.deadline),
        "progress": task.progress,
        "priority": task.priority.value,
        "category": task.category.value,
        "status": task.status.value,
        "createdAt": to_iso(task.created_at),
        "updatedAt": to_iso(task.updated_at),
    }
    if task.notes is not None:
        d["notes"] = task.notes
    if task.image_url is not None:
        d["imageUrl"] = task.image_url
    return d


def project_to_dict(project: Project) -> dict[str, Any]:
    d: dict[str, Any] = {
        "id": project.id,
        "name": project.name,
        "tasks": [task_to_dict(t) for t in project.tasks],
        "createdAt": to_iso(project.created_at),
        "updatedAt": to_iso(project.updated_at),
    }
    if project.share_id is not None:
        d["shareId"] = project.share_id
    return d


def task_from_dict(data: Any) -> Task:
    if not isinstance(data, Mapping):
        raise ProjectDataError("Task entry must be an object")
    try:
        progress = int(data.get("progress", 0))
    except (TypeError, ValueError) as e:
        raise ProjectDataError(f"Invalid progress: {data.get('progress')!r}") from e
    if "id" not in data or "title" not in data:
        raise ProjectDataError("Task entry is missing id or title")

    return Task(
        id=str(data["id"]),
        title=str(data["title"]),
        description=str(data.get("description") or ""),
        deadline=parse_iso(data.get("deadline")),
        progress=clamp_progress(progress),
        priority=_enum(Priority, data.get("priority"), "priority"),
        category=_enum(Category, data.get("category"), "category"),
        status=_enum(TaskStatus, data.get("status"), "status"),
        created_at=parse_iso(data.get("createdAt")),
        updated_at=parse_iso(data.get("updatedAt")),
        notes=data.get("notes"),
        image_url=data.get("imageUrl"),
    )


def project_from_dict(data: Any) -> Project:
    if not isinstance(data, Mapping):
        raise ProjectDataError("Project document must be an object")
    tasks_raw = data.get("tasks")
    if not isinstance(tasks_raw, list):
        raise ProjectDataError("Project document has no task list")
    if not data.get("id") or not data.get("name"):
        raise ProjectDataError("Project document is missing id or name")

    return Project(
        id=str(data["id"]),
        name=str(data["name"]),
        tasks=[task_from_dict(t) for t in tasks_raw],
        share_id=data.get("shareId") or None,
        created_at=parse_iso(data.get("createdAt")),
        updated_at=parse_iso(data.get("updatedAt")),
    )


# ---- row codec (remote tables) ----


def project_to_row(project: Project, *, owner_id: str) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "share_id": project.share_id,
        "owner_id": owner_id,
        "is_public": project.share_id is not None,
        "created_at": to_iso(project.created_at),
        "updated_at": to_iso(project.updated_at),
    }


def task_to_row(task: Task, *, project_id: str) -> dict[str, Any]:
    return {
        "id": task.id,
        "project_id": project_id,
        "title": task.title,
        "description": task.description,
        "deadline": to_iso(task.deadline),
        "progress": task.progress,
        "priority": task.priority.value,
        "category": task.category.value,
        "status": task.status.value,
        "notes": task.notes,
        "image_url": task.image_url,
        "created_at": to_iso(task.created_at),
        "updated_at": to_iso(task.updated_at),
    }


def task_from_row(row: Mapping[str, Any]) -> Task:
    try:
        progress = int(row.get("progress") or 0)
    except (TypeError, ValueError) as e:
        raise ProjectDataError(f"Invalid progress in task row: {row.get('progress')!r}") from e

    return Task(
        id=str(row["id"]),
        title=str(row["title"]),
        description=str(row.get("description") or ""),
        deadline=parse_iso(row["deadline"]),
        progress=clamp_progress(progress),
        priority=_enum(Priority, row.get("priority"), "priority"),
        category=_enum(Category, row.get("category"), "category"),
        status=_enum(TaskStatus, row.get("status"), "status"),
        created_at=parse_iso(row["created_at"]),
        updated_at=parse_iso(row["updated_at"]),
        notes=row.get("notes"),
        image_url=row.get("image_url"),
    )


def project_from_rows(project_row: Mapping[str, Any], task_rows: list[Mapping[str, Any]]) -> Project:
    return Project(
        id=str(project_row["id"]),
        name=str(project_row["name"]),
        share_id=project_row.get("share_id") or None,
        created_at=parse_iso(project_row["created_at"]),
        updated_at=parse_iso(project_row["updated_at"]),
        tasks=[task_from_row(r) for r in task_rows],
    )
