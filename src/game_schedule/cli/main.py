# src/game_schedule/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the admin context, loads the project
(remote first, local cache as fallback), then runs the console REPL.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import AdminContext, create_context
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(ctx: AdminContext) -> None:
    try:
        project = await ctx.store.load_from_database()
        if project is not None:
            logger.info("Loaded project '%s' (%d tasks).", project.name, len(project.tasks))
        else:
            logger.info("No project yet. Log in and use /create <name>.")

        if ctx.auth.is_authenticated():
            ctx.store.set_admin_mode(True)

        await run_console_loop(ctx)
    finally:
        # Best-effort shutdown (no exceptions should escape).
        try:
            await ctx.store.aclose()
        except Exception:
            logger.exception("Failed to close the store cleanly.")


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/game_schedule")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "game-schedule"))

    ctx = create_context(settings=settings)
    try:
        asyncio.run(_run(ctx))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
