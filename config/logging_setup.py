from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAMES = ("main", "backend", "config", "server", "session", "ui")

_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def build_rotating_handler(
    log_dir: Path,
    filename: str,
    *,
    retention: int,
    max_bytes: int,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler; `retention` counts the live file too."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    *,
    log_dir: str,
    level: str = "INFO",
    max_bytes: int = 1_048_576,
    retention: int = 3,
    console: bool = True,
) -> logging.Handler:
    """
    Attach console + rotating file handlers to the application's top-level loggers.

    Modules log through `logging.getLogger(__name__)`, so the handlers go on the
    package roots listed in LOGGER_NAMES rather than on the root logger (uvicorn and
    httpx keep their own configuration).

    Returns the file handler so callers/tests can detach it.
    """
    formatter = logging.Formatter(_FORMAT)
    file_handler = build_rotating_handler(
        Path(log_dir),
        "sawbot.log",
        retention=retention,
        max_bytes=max_bytes,
        formatter=formatter,
    )

    handlers: list[logging.Handler] = [file_handler]
    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        handlers.append(stream)

    lvl = logging.getLevelName(str(level).upper())
    if not isinstance(lvl, int):
        lvl = logging.INFO

    for name in LOGGER_NAMES:
        lg = logging.getLogger(name)
        lg.setLevel(lvl)
        for h in handlers:
            lg.addHandler(h)
        lg.propagate = False
    return file_handler
