# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real keys. Use .env (local, gitignored).

Leaving the Supabase URL or key empty runs the app in local-only mode:
everything is persisted to the local SQLite cache.
"""

ENV_VARS = {
    # App / logging
    "GAME_SCHEDULE_APP_NAME": "App display name (default: game-schedule).",
    "GAME_SCHEDULE_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "GAME_SCHEDULE_DATA_DIR": "Local data directory (default: .local/game_schedule).",
    "GAME_SCHEDULE_CACHE_DB_PATH": "Local cache SQLite path (default: <data_dir>/cache.sqlite3).",
    # Remote backend
    "GAME_SCHEDULE_SUPABASE_URL": (
        "Supabase project URL. Also read from SUPABASE_URL / NEXT_PUBLIC_SUPABASE_URL."
    ),
    "GAME_SCHEDULE_SUPABASE_ANON_KEY": (
        "Supabase anon key. Also read from SUPABASE_ANON_KEY / NEXT_PUBLIC_SUPABASE_ANON_KEY."
    ),
    "GAME_SCHEDULE_REMOTE_TIMEOUT_SECONDS": "HTTP read timeout for the remote backend (default: 10).",
    "GAME_SCHEDULE_REALTIME_POLL_SECONDS": "Live-update poll interval (default: 5).",
}
