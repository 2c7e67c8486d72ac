# src/game_schedule/errors.py

from __future__ import annotations


class GameScheduleError(Exception):
    """Base class for errors raised by game_schedule."""


class ProjectDataError(GameScheduleError, ValueError):
    """Project document could not be parsed (import text, cached JSON)."""


class NoProjectError(GameScheduleError, LookupError):
    """An operation needed a project but none is loaded or stored."""


class RemoteError(GameScheduleError):
    """
    Remote backend call failed (transport error or non-2xx response).

    The gateway catches these and downgrades to the local cache.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
