# src/game_schedule/storage/remote_client.py

from __future__ import annotations

"""
Minimal async PostgREST client (Supabase REST endpoint).

Only what the gateway needs: select with equality filters, upsert, insert and
delete. Every failure (transport or non-2xx) is raised as RemoteError so the
gateway has a single thing to catch.
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..errors import RemoteError

logger = logging.getLogger(__name__)

JsonRow = dict[str, Any]


def _eq_params(filters: Mapping[str, Any] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for col, val in (filters or {}).items():
        params[col] = f"eq.{val}"
    return params


class SupabaseRestClient:
    def __init__(
        self,
        url: str,
        anon_key: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url or not url.strip():
            raise RuntimeError("Supabase URL is not set. Set GAME_SCHEDULE_SUPABASE_URL in your .env.")
        if not anon_key or not anon_key.strip():
            raise RuntimeError(
                "Supabase anon key is not set. Set GAME_SCHEDULE_SUPABASE_ANON_KEY in your .env."
            )

        self._base_url = url.strip().rstrip("/") + "/rest/v1"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "apikey": anon_key,
                "Authorization": f"Bearer {anon_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(
                connect=min(5.0, timeout_seconds),
                read=timeout_seconds,
                write=timeout_seconds,
                pool=min(5.0, timeout_seconds),
            ),
            transport=transport,
        )
        logger.info("Remote client ready base_url=%s", self._base_url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = await self._client.request(
                method,
                f"/{table}",
                params=params,
                json=json_body,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {table} failed: {e.__class__.__name__}: {e}") from e

        if resp.status_code >= 400:
            raise RemoteError(
                f"{method} {table} -> HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(f"{method} {table} returned invalid JSON") from e

    async def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any] | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
    ) -> list[JsonRow]:
        """
        GET rows. `order` uses PostgREST syntax, e.g. "updated_at.desc".
        """
        params = {"select": columns, **_eq_params(filters)}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(int(limit))

        data = await self._request("GET", table, params=params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise RemoteError(f"GET {table} returned a non-list payload")
        return [r for r in data if isinstance(r, dict)]

    async def upsert(self, table: str, rows: list[JsonRow]) -> None:
        await self._request(
            "POST",
            table,
            json_body=rows,
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def insert(self, table: str, rows: list[JsonRow]) -> None:
        if not rows:
            return
        await self._request("POST", table, json_body=rows, prefer="return=minimal")

    async def delete(self, table: str, *, filters: Mapping[str, Any]) -> None:
        if not filters:
            # PostgREST refuses unfiltered deletes anyway; never send one.
            raise ValueError("delete requires at least one filter")
        await self._request("DELETE", table, params=_eq_params(filters), prefer="return=minimal")
