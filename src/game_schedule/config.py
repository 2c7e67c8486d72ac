# src/game_schedule/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Remote backend is optional: missing URL or key means local-only mode.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "GAME_SCHEDULE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    cache_db_path: Path

    # ---- Remote backend (Supabase / PostgREST) ----
    supabase_url: str | None
    supabase_anon_key: str | None
    remote_timeout_seconds: float
    realtime_poll_seconds: float

    @property
    def remote_configured(self) -> bool:
        return bool((self.supabase_url or "").strip() and (self.supabase_anon_key or "").strip())

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "game-schedule") or "game-schedule"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/game_schedule"))
        cache_db_path = _env_path(_k("CACHE_DB_PATH"), data_dir / "cache.sqlite3")

        # Accept the plain Supabase names and the ones the web frontend uses.
        supabase_url = _first_env(
            _k("SUPABASE_URL"), "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL", default=None
        )
        supabase_anon_key = _first_env(
            _k("SUPABASE_ANON_KEY"),
            "SUPABASE_ANON_KEY",
            "NEXT_PUBLIC_SUPABASE_ANON_KEY",
            default=None,
        )

        remote_timeout_seconds = _env_float(_k("REMOTE_TIMEOUT_SECONDS"), 10.0)
        realtime_poll_seconds = _env_float(_k("REALTIME_POLL_SECONDS"), 5.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            cache_db_path=cache_db_path,
            supabase_url=supabase_url.strip() if supabase_url else None,
            supabase_anon_key=supabase_anon_key.strip() if supabase_anon_key else None,
            remote_timeout_seconds=remote_timeout_seconds,
            realtime_poll_seconds=realtime_poll_seconds,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _load_dotenv_if_available()
        _SETTINGS = Settings.from_env()
    return _SETTINGS
