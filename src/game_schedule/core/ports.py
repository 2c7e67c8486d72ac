# src/game_schedule/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The state store and the gateway depend on Protocols instead of concrete
implementations, so the remote backend stays optional and tests can swap in fakes.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from .models import Project

JsonRow = dict[str, Any]


class RemoteClient(Protocol):
    """Table-level access to the remote database (projects, tasks)."""

    async def select(
            self,
            table: str,
            *,
            filters: Mapping[str, Any] | None = None,
            columns: str = "*",
            order: str | None = None,
            limit: int | None = None,
    ) -> list[JsonRow]: ...

    async def upsert(self, table: str, rows: list[JsonRow]) -> None: ...
    async def insert(self, table: str, rows: list[JsonRow]) -> None: ...
    async def delete(self, table: str, *, filters: Mapping[str, Any]) -> None: ...
    async def aclose(self) -> None: ...


class ProjectCache(Protocol):
    """Local fail-soft persistence (see storage.local_cache.LocalCacheStore)."""

    def save_project(self, project: Project) -> None: ...
    def load_project(self) -> Project | None: ...
    def save_settings(self, settings: dict[str, Any]) -> None: ...
    def load_settings(self) -> dict[str, Any] | None: ...
    def set_admin_password(self, password: str) -> None: ...
    def get_admin_password(self) -> str | None: ...
    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...
    def clear_all(self) -> None: ...
