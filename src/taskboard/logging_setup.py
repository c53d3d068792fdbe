# src/taskboard/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Minimum level shown on the console, by logger name prefix (longest prefix wins).
# Anything not listed here is third-party and only shows at ERROR.
CONSOLE_FLOORS: dict[str, int] = {
    "taskboard": logging.NOTSET,
    "taskboard.board.sqlite_store": logging.WARNING,
    "py.warnings": logging.ERROR,
}

# Chatty HTTP / SDK loggers, capped for the file handler too.
QUIET_LIBRARIES = ("httpx", "httpcore", "openai", "passlib")


def console_floor(logger_name: str) -> int:
    best, floor = "", logging.ERROR
    for prefix, level in CONSOLE_FLOORS.items():
        matches = logger_name == prefix or logger_name.startswith(prefix + ".")
        if matches and len(prefix) > len(best):
            best, floor = prefix, level
    return floor


class _ConsoleFloorFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= console_floor(record.name)


def _handler(handler: logging.Handler, level: int, fmt: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskboard",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route every log record to stderr (filtered by CONSOLE_FLOORS) and to
    `taskboard.log` under log_dir (unfiltered). Replaces any handlers already
    on the root logger, so call it once at startup. Returns the log file path.
    """
    log_file = Path(log_dir) / "taskboard.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = _handler(logging.StreamHandler(sys.stderr), console_level, fmt)
    console.addFilter(_ConsoleFloorFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    root.addHandler(console)
    root.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), file_level, fmt))

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    # warnings.warn(...) arrives as 'py.warnings'
    logging.captureWarnings(True)
    return log_file
