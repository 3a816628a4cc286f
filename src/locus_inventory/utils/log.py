from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILENAME = "locus_inventory.log"
MAX_LOG_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3


def configure_logging(level: str | int = "INFO", log_dir: Path | None = None) -> None:
    """Route package logs to the console and, when ``log_dir`` is given, a rotating file."""

    resolved_level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_dir / LOG_FILENAME,
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        )

    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, handlers=handlers, force=True)
