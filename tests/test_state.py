# tests/test_state.py

from __future__ import annotations

import asyncio
import json
from datetime import date, timedelta
from pathlib import Path

import pytest

from game_schedule.core.models import (
    NotificationSettings,
    TaskFormData,
    TaskStatus,
    Theme,
    ViewType,
)
from game_schedule.core.state import AppState, AppStore
from game_schedule.storage.gateway import Backend, DatabaseGateway
from game_schedule.storage.local_cache import LocalCacheStore
from game_schedule.storage.remote_client import SupabaseRestClient

from .fakes import FakePostgrest, make_project, make_task, wait_for


def _form(title: str = "Art pass", **overrides) -> TaskFormData:
    values = dict(
        title=title,
        description="sprites",
        deadline=(date.today() + timedelta(days=1)).isoformat(),
        priority="high",
        category="graphics",
    )
    values.update(overrides)
    return TaskFormData(**values)


@pytest.fixture()
def store(local_gateway: DatabaseGateway) -> AppStore:
    return AppStore(local_gateway)


@pytest.mark.asyncio
async def test_demo_scenario(store: AppStore) -> None:
    await store.create_project("Demo")
    await store.add_task(_form())

    project = store.project
    assert project is not None and project.name == "Demo"
    [task] = project.tasks
    assert task.progress == 0
    assert task.status == TaskStatus.NOT_STARTED
    assert task.priority.value == "high"
    assert task.category.value == "graphics"

    await store.update_task_progress(task.id, 100)

    done = store.project.find_task(task.id)
    assert done.status == TaskStatus.DONE
    assert done.progress == 100
    assert done.updated_at >= done.created_at
    assert store.project.updated_at >= store.project.created_at


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("value", "progress", "status"),
    [
        (-10, 0, TaskStatus.NOT_STARTED),
        (0, 0, TaskStatus.NOT_STARTED),
        (42, 42, TaskStatus.IN_PROGRESS),
        (250, 100, TaskStatus.DONE),
    ],
)
async def test_update_task_progress_clamps_and_derives_status(
    store: AppStore, value: int, progress: int, status: TaskStatus
) -> None:
    await store.create_project("Demo")
    await store.add_task(_form())
    task_id = store.project.tasks[0].id

    await store.update_task_progress(task_id, value)

    task = store.project.find_task(task_id)
    assert (task.progress, task.status) == (progress, status)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "progress"),
    [("not-started", 0), ("in-progress", 50), ("done", 100)],
)
async def test_update_task_status_sets_fixed_progress(store: AppStore, status: str, progress: int) -> None:
    await store.create_project("Demo")
    await store.add_task(_form())
    task_id = store.project.tasks[0].id
    await store.update_task_progress(task_id, 30)

    await store.update_task_status(task_id, status)

    task = store.project.find_task(task_id)
    assert task.status == TaskStatus(status)
    assert task.progress == progress


@pytest.mark.asyncio
async def test_unknown_task_ids_are_no_ops(store: AppStore) -> None:
    await store.create_project("Demo")
    await store.add_task(_form())
    before = store.project

    assert await store.update_task("missing", {"title": "x"}) is None
    assert await store.delete_task("missing") is None
    assert await store.update_task_progress("missing", 50) is None
    assert store.project is before


@pytest.mark.asyncio
async def test_update_task_rejects_unknown_fields(store: AppStore) -> None:
    await store.create_project("Demo")
    await store.add_task(_form())
    with pytest.raises(ValueError):
        await store.update_task(store.project.tasks[0].id, {"assignee": "bob"})


@pytest.mark.asyncio
async def test_update_and_delete_task(store: AppStore, cache: LocalCacheStore) -> None:
    await store.create_project("Demo")
    await store.add_task(_form("Art pass"))
    await store.add_task(_form("Boss music", category="sound"))
    first, second = store.project.tasks

    await store.update_task(first.id, {"notes": "use palette v2", "priority": "low"})
    await store.delete_task(second.id)

    [only] = store.project.tasks
    assert only.notes == "use palette v2"
    assert only.priority.value == "low"
    assert cache.load_project() == store.project


@pytest.mark.asyncio
async def test_add_task_presence_checks_and_no_project(store: AppStore) -> None:
    assert await store.add_task(_form()) is None

    await store.create_project("Demo")
    with pytest.raises(ValueError):
        await store.add_task(_form(title=" "))
    with pytest.raises(ValueError):
        await store.add_task(_form(description=""))
    with pytest.raises(ValueError):
        await store.create_project("")


@pytest.mark.asyncio
async def test_local_only_reload_yields_same_project(store: AppStore, local_gateway: DatabaseGateway) -> None:
    await store.create_project("Demo")
    await store.add_task(_form())
    assert store.last_save is not None and store.last_save.backend == Backend.LOCAL
    assert store.subscription is None

    fresh = AppStore(local_gateway)
    assert await fresh.load_from_database() == store.project
    assert fresh.project == store.project


@pytest.mark.asyncio
async def test_state_is_updated_before_persistence(store: AppStore, local_gateway: DatabaseGateway) -> None:
    seen: list[int] = []
    original_save = local_gateway.save_project

    async def spying_save(project):
        seen.append(len(store.project.tasks))
        return await original_save(project)

    local_gateway.save_project = spying_save  # type: ignore[method-assign]

    await store.create_project("Demo")
    await store.add_task(_form())

    assert seen == [0, 1]


@pytest.mark.asyncio
async def test_share_id_generation_and_lookup(store: AppStore, cache: LocalCacheStore) -> None:
    assert await store.generate_share_id() is None

    await store.create_project("Demo")
    share_id = await store.generate_share_id()

    assert share_id is not None and len(share_id) == 12
    assert store.project.share_id == share_id
    assert cache.load_project().share_id == share_id

    assert await store.load_project_by_share_id("NoSuchShare1") is None
    viewer = AppStore(store.gateway)
    shared = await viewer.load_project_by_share_id(share_id)
    assert shared is not None and viewer.project == shared


@pytest.mark.asyncio
async def test_export_import_replaces_project(store: AppStore) -> None:
    await store.create_project("Demo")
    await store.add_task(_form())
    text = await store.export_project()

    doc = json.loads(text)
    doc["id"] = "imported-project"
    doc["name"] = "Imported"
    project = await store.import_project(json.dumps(doc))

    assert store.project == project
    assert store.project.name == "Imported"
    assert len(store.project.tasks) == 1


@pytest.mark.asyncio
async def test_settings_are_persisted_and_restored(store: AppStore, local_gateway: DatabaseGateway) -> None:
    store.set_theme("dark")
    store.set_notifications(NotificationSettings(enabled=False, on_deadline=False))
    store.set_current_view(ViewType.KANBAN)

    fresh = AppStore(local_gateway)
    await fresh.load_from_database()

    assert fresh.state.theme == Theme.DARK
    assert fresh.state.notifications == NotificationSettings(enabled=False, on_deadline=False)


@pytest.mark.asyncio
async def test_clear_all_resets_everything(store: AppStore, cache: LocalCacheStore) -> None:
    await store.create_project("Demo")
    await store.add_task(_form())
    store.set_admin_mode(True)
    store.set_theme(Theme.DARK)

    await store.clear_all()

    assert store.state == AppState()
    assert store.state.theme == Theme.LIGHT
    assert store.state.notifications == NotificationSettings()
    assert not store.state.is_admin_mode
    assert cache.load_project() is None
    assert cache.load_settings() is None
    assert await store.gateway.load_project() is None


@pytest.mark.asyncio
async def test_listeners_are_notified(store: AppStore) -> None:
    names: list[str | None] = []
    remove = store.add_listener(lambda s: names.append(s.project.name if s.project else None))

    await store.create_project("Demo")
    await store.update_project({"name": "Demo 2"})
    remove()
    await store.update_project({"name": "Demo 3"})

    assert names == ["Demo", "Demo 2"]


# ---- with a remote backend ----


@pytest.mark.asyncio
async def test_remote_store_holds_a_single_subscription(remote_gateway: DatabaseGateway) -> None:
    store = AppStore(remote_gateway)
    await store.create_project("Demo")

    sub = store.subscription
    assert sub is not None and sub.active
    assert store.subscribe_to_project() is sub

    await store.add_task(_form())
    assert store.subscription is sub
    assert store.last_save is not None and store.last_save.backend == Backend.REMOTE

    await store.clear_all()
    assert store.subscription is None
    await sub.wait_closed()
    assert not sub.active
    await store.aclose()


@pytest.mark.asyncio
async def test_remote_store_applies_remote_changes(
    remote_gateway: DatabaseGateway, server: FakePostgrest
) -> None:
    store = AppStore(remote_gateway)
    await store.create_project("Demo")
    project_id = store.project.id
    # Let the subscription record its baseline.
    await asyncio.sleep(0.05)

    other_device = AppStore(remote_gateway)
    await other_device.load_from_database()
    await other_device.add_task(_form("Level blockout", category="planning"))

    assert await wait_for(lambda: len(store.project.tasks) == 1)
    assert store.project.id == project_id
    assert store.project.tasks[0].title == "Level blockout"
    await store.aclose()
    other_device.unsubscribe_from_project()


@pytest.mark.asyncio
async def test_remote_failure_keeps_optimistic_state(
    remote_gateway: DatabaseGateway, server: FakePostgrest, cache: LocalCacheStore
) -> None:
    server.fail = True
    store = AppStore(remote_gateway)

    await store.create_project("Demo")
    await store.add_task(_form())

    assert len(store.project.tasks) == 1
    assert store.last_save is not None and store.last_save.fell_back
    assert cache.load_project() == store.project
    store.unsubscribe_from_project()


@pytest.mark.asyncio
async def test_subscription_switches_when_project_changes(remote_gateway: DatabaseGateway) -> None:
    await remote_gateway.save_project(make_project(make_task(), project_id="shared", share_id="Pub000000001"))

    store = AppStore(remote_gateway)
    await store.create_project("Demo")
    first = store.subscription

    await store.load_project_by_share_id("Pub000000001")

    assert store.subscription is not None
    assert store.subscription is not first
    assert store.subscription.project_id == "shared"
    await store.aclose()


@pytest.mark.asyncio
async def test_slow_own_writes_do_not_roll_back_state(
    remote_gateway: DatabaseGateway, server: FakePostgrest
) -> None:
    store = AppStore(remote_gateway)
    await store.create_project("Demo")
    await asyncio.sleep(0.05)
    # Task rows stay deleted for a while during each replace-all save.
    server.delays[("POST", "tasks")] = 0.1

    titles = ["One", "Two", "Three"]
    for n, title in enumerate(titles, start=1):
        await store.add_task(_form(title))
        assert [t.title for t in store.project.tasks] == titles[:n]

    await asyncio.sleep(0.05)
    assert [t.title for t in store.project.tasks] == titles
    assert sorted(r["title"] for r in server.rows("tasks")) == sorted(titles)
    await store.aclose()


@pytest.mark.asyncio
async def test_share_viewer_receives_owner_edits(
    tmp_path: Path, remote_gateway: DatabaseGateway, server: FakePostgrest
) -> None:
    owner = AppStore(remote_gateway)
    await owner.create_project("Demo")
    share_id = await owner.generate_share_id()
    assert share_id is not None

    viewer_client = SupabaseRestClient("https://demo.supabase.co", "anon-key", transport=server.transport())
    viewer_gateway = DatabaseGateway(LocalCacheStore(tmp_path / "viewer.sqlite3"), viewer_client, poll_interval=0.01)
    assert viewer_gateway.owner_id() != remote_gateway.owner_id()

    viewer = AppStore(viewer_gateway)
    assert await viewer.load_project_by_share_id(share_id) is not None
    await asyncio.sleep(0.05)

    await owner.add_task(_form("Boss music", category="sound"))

    assert await wait_for(lambda: [t.title for t in viewer.project.tasks] == ["Boss music"])
    assert viewer.subscription is not None and viewer.subscription.deliveries >= 1
    assert viewer.project.share_id == share_id
    await viewer.aclose()
    await owner.aclose()
