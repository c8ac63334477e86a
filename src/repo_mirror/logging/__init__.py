from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from repo_mirror.config.models import FileLoggingSettings, LoggingSettings

LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Only surfaced when the mirror itself runs at DEBUG.
NOISY_LIBRARY_LOGGERS = ("aiohttp", "asyncio")


def _parse_level(name: str) -> int:
    level = logging.getLevelNamesMapping().get(name.upper())
    if level is None:
        raise ValueError(f"Invalid logging level: {name}")
    return level


def _rotating_file_handler(settings: FileLoggingSettings) -> Optional[logging.Handler]:
    file_path = settings.path.strip()
    if not file_path:
        return None

    log_file = Path(file_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(log_file),
        when="midnight",
        backupCount=settings.rotation.backup_count,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    return handler


def init_logging(settings: LoggingSettings) -> None:
    """
    Configure the root logger for the mirror.

    Records go to stderr and, when `logging.file.path` is set, to a file rotated at midnight.
    aiohttp and asyncio are held at WARNING unless the configured level is DEBUG.
    """

    level = _parse_level(settings.level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    library_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in NOISY_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    def attach(handler: logging.Handler) -> None:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    attach(logging.StreamHandler())
    try:
        file_handler = _rotating_file_handler(settings.file)
    except OSError:
        root_logger.error("File logging handler failed to initialize. path=%s", settings.file.path, exc_info=True)
        return
    if file_handler is not None:
        attach(file_handler)


__all__ = ["init_logging"]
