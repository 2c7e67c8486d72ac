# src/game_schedule/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "game_schedule.log"

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Poll cycles and HTTP request lines fire every few seconds.
_QUIET_ON_CONSOLE = ("game_schedule.storage.realtime", "httpx", "httpcore")


class _ConsoleFilter(logging.Filter):
    """Admin console shows our own logs; chatty and third-party sources only when they matter."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(_QUIET_ON_CONSOLE):
            return record.levelno >= logging.WARNING
        if record.name.startswith("game_schedule"):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/game_schedule",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered, for the REPL) plus a full file log under log_dir.
    Call once from cli.main before anything logs. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    console.addFilter(_ConsoleFilter())

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(console)
    root.addHandler(file_handler)

    # Request lines from httpx are too chatty even for the file log.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
