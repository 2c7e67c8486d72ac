# src/game_schedule/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.bootstrap import AdminContext
from ..cli.commands import registry as command_registry

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def run_console_loop(ctx: AdminContext) -> None:
    """
    Admin REPL. input() runs in a worker thread so the event loop keeps
    serving live-update polls while we wait for the next line.
    """
    logger.info("Console connector started (remote=%s).", ctx.store.gateway.is_remote_available)
    _print_ts("[CONSOLE] Type /help for commands. Use /exit to quit.\n")

    while True:
        try:
            line = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = await command_registry.handle(ctx, line, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Commands start with '/'. Use /help to list them."
        _print_ts(reply)

    logger.info("Console connector finished.")
