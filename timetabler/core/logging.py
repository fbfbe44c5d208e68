"""Logging setup for the timetabler CLI and library."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


LOG_FILE_NAME = "timetabler.log"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Libraries whose DEBUG output drowns out the engine's own.
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def resolve_level(environment: str, level: Optional[str] = None) -> int:
    """Explicit level if it names one, otherwise INFO in production and DEBUG elsewhere."""
    if level:
        resolved = logging.getLevelName(level.upper())
        if isinstance(resolved, int):
            return resolved
        return logging.INFO
    return logging.INFO if environment == "production" else logging.DEBUG


def _file_handler(logs_dir: Path, log_level: int) -> logging.Handler:
    logs_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        logs_dir / LOG_FILE_NAME,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    return handler


def setup_logging(
    *,
    environment: str,
    level: Optional[str] = None,
    logs_dir: Optional[Path] = None,
) -> None:
    """
    Configure the root logger once per process.

    Records go to stderr through rich so they never mix with command
    output on stdout. Production additionally keeps a rotating log file
    under `logs_dir` (default ./logs).
    """
    root = logging.getLogger()
    if root.handlers:
        return

    env = (environment or "development").lower().strip()
    log_level = resolve_level(env, level)

    console = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=env != "production",
    )
    console.setLevel(log_level)
    handlers: list[logging.Handler] = [console]

    if env == "production":
        handlers.append(_file_handler(logs_dir or Path.cwd() / "logs", log_level))

    logging.basicConfig(level=log_level, format="%(message)s", handlers=handlers)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
