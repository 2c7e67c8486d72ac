# src/game_schedule/storage/realtime.py

from __future__ import annotations

"""
Live project updates.

A small polling loop per subscribed project that:
- fetches a change fingerprint of the project row and its task rows,
- on any change (insert/update/delete on either table) reloads the project,
- hands the refreshed Project to the callback.

To stop it, call cancel() on the handle.
"""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Hashable

from ..core.models import Project

logger = logging.getLogger(__name__)

ProjectCallback = Callable[[Project], Awaitable[None] | None]
FingerprintFn = Callable[[], Awaitable[Hashable]]
ReloadFn = Callable[[], Awaitable[Project | None]]


class ProjectSubscription:
    """Cancellable handle for one project's change listener."""

    def __init__(
        self,
        *,
        project_id: str,
        fingerprint: FingerprintFn,
        reload: ReloadFn,
        callback: ProjectCallback,
        poll_interval: float = 5.0,
    ) -> None:
        self.project_id = project_id
        self._fingerprint = fingerprint
        self._reload = reload
        self._callback = callback
        self._poll_interval = max(0.01, float(poll_interval))
        self._task: asyncio.Task[None] | None = None
        self._holds = 0
        self._generation = 0
        self.deliveries = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @contextlib.asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        """
        Suppress delivery while the owning store writes the project.

        Any poll that overlaps the hold is discarded and the fingerprint is
        re-recorded afterwards, so the store never sees its own write echoed
        back (in particular the empty task list between delete and insert).
        """
        self._holds += 1
        self._generation += 1
        try:
            yield
        finally:
            self._holds -= 1
            self._generation += 1

    def start(self) -> None:
        """Schedule the poll loop on the running event loop."""
        if self._task is not None:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"project-{self.project_id}")
        logger.info("Subscribed to project id=%s (poll=%.2fs)", self.project_id, self._poll_interval)

    def cancel(self) -> None:
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        logger.info("Unsubscribed from project id=%s", self.project_id)

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def _settled(self, generation: int) -> bool:
        return self._holds == 0 and self._generation == generation

    async def _deliver(self, generation: int) -> None:
        project = await self._reload()
        if project is None or not self._settled(generation):
            return
        if project.id != self.project_id:
            logger.debug("Refreshed project id=%s != subscribed id=%s; skipped", project.id, self.project_id)
            return

        result = self._callback(project)
        if inspect.isawaitable(result):
            await result
        self.deliveries += 1

    async def _run(self) -> None:
        last: Hashable | None = None
        while True:
            generation = self._generation
            try:
                current = await self._fingerprint()
                if last is not None and current != last and self._settled(generation):
                    logger.debug("Change detected on project id=%s", self.project_id)
                    await self._deliver(generation)
                # A local write overlapping this poll invalidates the baseline.
                last = current if self._settled(generation) else None
            except Exception:
                logger.exception("Realtime poll failed project_id=%s", self.project_id)

            await asyncio.sleep(self._poll_interval)
