# tests/test_realtime.py

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from game_schedule.core.models import Project
from game_schedule.storage.gateway import DatabaseGateway

from .fakes import T0, FakePostgrest, make_project, make_task, wait_for


@pytest.mark.asyncio
async def test_subscription_delivers_refreshed_project_on_task_change(
    remote_gateway: DatabaseGateway, server: FakePostgrest
) -> None:
    project = make_project(make_task("Art pass"))
    await remote_gateway.save_project(project)

    received: list[Project] = []
    sub = remote_gateway.subscribe_to_project(project.id, received.append)
    assert sub is not None and sub.active

    # Let the first poll record the baseline.
    await asyncio.sleep(0.05)
    assert received == []

    # Simulate another client inserting a task row.
    new_task = make_task("Boss music", offset_minutes=1)
    server.tables["tasks"].append(
        {
            "id": new_task.id,
            "project_id": project.id,
            "title": new_task.title,
            "description": new_task.description,
            "deadline": new_task.deadline.isoformat(),
            "progress": 0,
            "priority": "high",
            "category": "graphics",
            "status": "not-started",
            "notes": None,
            "image_url": None,
            "created_at": new_task.created_at.isoformat(),
            "updated_at": new_task.updated_at.isoformat(),
        }
    )

    assert await wait_for(lambda: len(received) > 0)
    assert [t.title for t in received[-1].tasks] == ["Art pass", "Boss music"]

    sub.cancel()
    await sub.wait_closed()
    assert not sub.active


@pytest.mark.asyncio
async def test_cancelled_subscription_stops_delivering(remote_gateway: DatabaseGateway) -> None:
    project = make_project(make_task())
    await remote_gateway.save_project(project)

    calls: list[Project] = []

    async def on_change(p: Project) -> None:
        calls.append(p)

    sub = remote_gateway.subscribe_to_project(project.id, on_change)
    assert sub is not None
    await asyncio.sleep(0.05)
    sub.cancel()
    await sub.wait_closed()

    await remote_gateway.save_project(replace(project, name="Renamed", updated_at=T0 + timedelta(days=1)))
    await asyncio.sleep(0.05)

    assert calls == []
    sub.cancel()  # idempotent


@pytest.mark.asyncio
async def test_poll_errors_do_not_stop_the_subscription(
    remote_gateway: DatabaseGateway, server: FakePostgrest
) -> None:
    project = make_project()
    await remote_gateway.save_project(project)

    received: list[Project] = []
    sub = remote_gateway.subscribe_to_project(project.id, received.append)
    assert sub is not None
    await asyncio.sleep(0.05)

    server.fail = True
    await asyncio.sleep(0.05)
    assert sub.active

    server.fail = False
    await remote_gateway.save_project(replace(project, name="Renamed", updated_at=T0 + timedelta(days=1)))

    assert await wait_for(lambda: any(p.name == "Renamed" for p in received))
    sub.cancel()
    await sub.wait_closed()


@pytest.mark.asyncio
async def test_writes_under_hold_are_not_delivered(remote_gateway: DatabaseGateway) -> None:
    project = make_project(make_task())
    await remote_gateway.save_project(project)

    received: list[Project] = []
    sub = remote_gateway.subscribe_to_project(project.id, received.append)
    assert sub is not None
    await asyncio.sleep(0.05)

    async with sub.hold():
        await remote_gateway.save_project(replace(project, name="Ours", updated_at=T0 + timedelta(days=1)))
        await asyncio.sleep(0.05)
    await asyncio.sleep(0.05)
    assert received == []

    # Changes made after the hold is released are delivered again.
    await remote_gateway.save_project(replace(project, name="Theirs", updated_at=T0 + timedelta(days=2)))
    assert await wait_for(lambda: any(p.name == "Theirs" for p in received))
    sub.cancel()
    await sub.wait_closed()
