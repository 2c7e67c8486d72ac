# src/game_schedule/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from pathlib import Path

from ..core.models import Category, Priority, Task, TaskFormData, TaskStatus, Theme, ViewType, parse_iso
from ..errors import NoProjectError, ProjectDataError
from .bootstrap import AdminContext

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[
    [AdminContext, list[str], CommandEmitter | None], Awaitable[str] | str
]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the admin console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        ctx: AdminContext,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        result = handler(ctx, args, emit)
        if inspect.isawaitable(result):
            result = await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _require_admin(ctx: AdminContext) -> str | None:
    """Error text when there is no valid admin session, else None."""
    if ctx.auth.is_authenticated():
        ctx.store.set_admin_mode(True)
        return None
    ctx.store.set_admin_mode(False)
    return "Admin login required. Use /login <password>."


def _resolve_task(ctx: AdminContext, token: str) -> Task | str:
    project = ctx.store.project
    if project is None:
        return "No project. Use /create <name> first."
    matches = [t for t in project.tasks if t.id.startswith(token)]
    if not matches:
        return f"No task matches id '{token}'."
    if len(matches) > 1:
        return f"Task id '{token}' is ambiguous ({len(matches)} matches)."
    return matches[0]


def _format_task(task: Task) -> str:
    line = (
        f"{task.id[:8]}  [{task.status.value:<11}] {task.progress:>3}%  "
        f"{task.priority.value:<6} {task.category.value:<11} "
        f"due {task.deadline.date().isoformat()}  {task.title}"
    )
    if task.notes:
        line += f"\n          notes: {task.notes}"
    return line


def _saved_suffix(ctx: AdminContext) -> str:
    outcome = ctx.store.last_save
    if outcome is None:
        return ""
    return f" (saved: {outcome.backend.value})"


# ---- commands ----


def cmd_help(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    store = ctx.store
    project = store.project
    backend = "remote + local cache" if store.gateway.is_remote_available else "local-only"
    lines = [
        "Status:",
        f"  Storage: {backend}",
        f"  Admin session: {'ON' if ctx.auth.is_authenticated() else 'OFF'}",
        f"  View: {store.state.current_view.value}  Theme: {store.state.theme.value}",
        f"  Live updates: {'ON' if store.subscription is not None else 'OFF'}",
    ]
    if project is None:
        lines.append("  Project: (none)")
    else:
        done = sum(1 for t in project.tasks if t.status == TaskStatus.DONE)
        lines.append(f"  Project: {project.name} ({done}/{len(project.tasks)} tasks done)")
        lines.append(f"  Share id: {project.share_id or '(not shared)'}")
    return "\n".join(lines)


def cmd_login(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /login <password>"
    if not ctx.auth.authenticate(" ".join(args)):
        return "Wrong password."
    ctx.store.set_admin_mode(True)
    return "Logged in. Session is valid for 24 hours."


def cmd_logout(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    ctx.auth.logout()
    ctx.store.set_admin_mode(False)
    return "Logged out."


def cmd_passwd(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    if not args:
        return "Usage: /passwd <new password>"
    ctx.store.gateway.set_admin_password(" ".join(args))
    return "Admin password changed."


async def cmd_create(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    name = " ".join(args).strip()
    if not name:
        return "Usage: /create <project name>"
    await ctx.store.create_project(name)
    return f"Project '{name}' created{_saved_suffix(ctx)}."


async def cmd_rename(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    name = " ".join(args).strip()
    if not name:
        return "Usage: /rename <project name>"
    if await ctx.store.update_project({"name": name}) is None:
        return "No project. Use /create <name> first."
    return f"Project renamed to '{name}'{_saved_suffix(ctx)}."


async def cmd_add(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add <title> | <description> | <deadline YYYY-MM-DD> [| priority [| category]]
    """
    if err := _require_admin(ctx):
        return err
    if ctx.store.project is None:
        return "No project. Use /create <name> first."

    fields = [f.strip() for f in " ".join(args).split("|")]
    if len(fields) < 3 or not all(fields[:3]):
        return "Usage: /add <title> | <description> | <deadline YYYY-MM-DD> [| priority [| category]]"

    title, description, deadline_raw = fields[:3]
    try:
        deadline = parse_iso(deadline_raw)
    except ProjectDataError:
        return f"Invalid deadline: {deadline_raw}. Use YYYY-MM-DD."
    if deadline.date() < date.today():
        return "Deadline must be today or later."

    try:
        priority = Priority(fields[3].lower()) if len(fields) > 3 and fields[3] else Priority.MEDIUM
        category = Category(fields[4].lower()) if len(fields) > 4 and fields[4] else Category.OTHER
    except ValueError:
        return (
            f"Priority must be one of: {', '.join(p.value for p in Priority)}; "
            f"category one of: {', '.join(c.value for c in Category)}."
        )

    await ctx.store.add_task(
        TaskFormData(
            title=title,
            description=description,
            deadline=deadline,
            priority=priority,
            category=category,
        )
    )
    task = ctx.store.project.tasks[-1]
    return f"Task added: {task.id[:8]} {task.title}{_saved_suffix(ctx)}."


def cmd_tasks(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    project = ctx.store.project
    if project is None:
        return "No project loaded."
    if not project.tasks:
        return f"{project.name}: no tasks yet."
    lines = [f"{project.name}:"]
    lines.extend(_format_task(t) for t in project.tasks)
    return "\n".join(lines)


async def cmd_progress(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    if len(args) != 2:
        return "Usage: /progress <task id> <0-100>"
    task = _resolve_task(ctx, args[0])
    if isinstance(task, str):
        return task
    try:
        value = int(args[1])
    except ValueError:
        return "Progress must be a whole number."
    await ctx.store.update_task_progress(task.id, value)
    updated = ctx.store.project.find_task(task.id)
    return f"{updated.title}: {updated.progress}% ({updated.status.value}){_saved_suffix(ctx)}."


async def cmd_state(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    if len(args) != 2:
        return f"Usage: /state <task id> <{'|'.join(s.value for s in TaskStatus)}>"
    task = _resolve_task(ctx, args[0])
    if isinstance(task, str):
        return task
    try:
        status = TaskStatus(args[1].lower())
    except ValueError:
        return f"Status must be one of: {', '.join(s.value for s in TaskStatus)}."
    await ctx.store.update_task_status(task.id, status)
    updated = ctx.store.project.find_task(task.id)
    return f"{updated.title}: {updated.progress}% ({updated.status.value}){_saved_suffix(ctx)}."


async def cmd_rm(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    if len(args) != 1:
        return "Usage: /rm <task id>"
    task = _resolve_task(ctx, args[0])
    if isinstance(task, str):
        return task
    await ctx.store.delete_task(task.id)
    return f"Task deleted: {task.title}{_saved_suffix(ctx)}."


async def cmd_share(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    share_id = await ctx.store.generate_share_id()
    if share_id is None:
        return "No project. Use /create <name> first."
    return f"Share id: {share_id} (read-only link: /share/{share_id})"


async def cmd_open(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 1:
        return "Usage: /open <share id>"
    project = await ctx.store.load_project_by_share_id(args[0])
    if project is None:
        return "Project not found. The share link may be wrong or the project was removed."
    return cmd_tasks(ctx, [], emit)


async def cmd_export(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    try:
        text = await ctx.store.export_project()
    except NoProjectError:
        return "No project to export."
    if not args:
        return text
    path = Path(" ".join(args)).expanduser()
    try:
        path.write_text(text, "utf-8")
    except OSError as e:
        return f"Failed to write {path}: {e}"
    return f"Project exported to {path}."


async def cmd_import(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    if not args:
        return "Usage: /import <path>"
    path = Path(" ".join(args)).expanduser()
    try:
        text = path.read_text("utf-8")
    except OSError as e:
        return f"Failed to read {path}: {e}"
    try:
        project = await ctx.store.import_project(text)
    except ProjectDataError as e:
        return f"Invalid project data: {e}"
    return f"Imported '{project.name}' ({len(project.tasks)} tasks)."


def cmd_theme(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return f"Theme is {ctx.store.state.theme.value}. Use /theme light or /theme dark."
    try:
        ctx.store.set_theme(args[0].lower())
    except ValueError:
        return "Usage: /theme light | /theme dark"
    return f"Theme set to {ctx.store.state.theme.value}."


def cmd_view(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    views = ", ".join(v.value for v in ViewType)
    if not args:
        return f"View is {ctx.store.state.current_view.value}. Available: {views}."
    try:
        ctx.store.set_current_view(args[0].lower())
    except ValueError:
        return f"Unknown view. Available: {views}."
    return f"View set to {ctx.store.state.current_view.value}."


async def cmd_migrate(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    if not ctx.store.gateway.is_remote_available:
        return "No remote backend configured; nothing to migrate."
    await ctx.store.migrate_from_local_storage()
    return "Migration finished (see log for details)."


async def cmd_clear(ctx: AdminContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if err := _require_admin(ctx):
        return err
    if args[:1] != ["yes"]:
        return "This deletes the project everywhere (remote and local). Confirm with /clear yes."
    if emit:
        with contextlib.suppress(Exception):
            emit("Clearing remote and local data...")
    await ctx.store.clear_all()
    ctx.auth.logout()
    logger.info("Data cleared from console at %s", datetime.now().astimezone().isoformat())
    return "All data cleared."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show storage mode, session and project summary.")
registry.register("login", cmd_login, help_text="Start an admin session: /login <password>.")
registry.register("logout", cmd_logout, help_text="End the admin session.")
registry.register("passwd", cmd_passwd, help_text="Change the admin password: /passwd <new>.")
registry.register("create", cmd_create, help_text="Create a project: /create <name>.")
registry.register("rename", cmd_rename, help_text="Rename the project: /rename <name>.")
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add title | description | YYYY-MM-DD [| priority [| category]].",
)
registry.register("tasks", cmd_tasks, help_text="List tasks.", aliases=["ls"])
registry.register("progress", cmd_progress, help_text="Set progress: /progress <id> <0-100>.")
registry.register("state", cmd_state, help_text="Set status: /state <id> <not-started|in-progress|done>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.")
registry.register("share", cmd_share, help_text="Generate a new share id.")
registry.register("open", cmd_open, help_text="Open a shared project read-only: /open <share id>.")
registry.register("export", cmd_export, help_text="Export the project as JSON: /export [path].")
registry.register("import", cmd_import, help_text="Import a project from JSON: /import <path>.")
registry.register("theme", cmd_theme, help_text="Theme: /theme light | /theme dark.")
registry.register("view", cmd_view, help_text="View: /view dashboard | gantt | calendar | kanban.")
registry.register("migrate", cmd_migrate, help_text="Copy the locally cached project to the remote backend.")
registry.register("clear", cmd_clear, help_text="Delete everything: /clear yes.")
