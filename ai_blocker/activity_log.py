# ai_blocker/activity_log.py

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

LOGGER_NAME = "ai_blocker"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(log_path: Path, console: bool = True) -> logging.Logger:
    """
    Attach an append-only file handler (and a console mirror) to the
    ai_blocker logger. Calling it again with the same path is a no-op.
    """
    log_path = Path(log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    target = str(log_path.resolve())

    for h in logger.handlers:
        if isinstance(h, logging.FileHandler) and h.baseFilename == target:
            return logger

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = logging.FileHandler(target, mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console and not any(
        type(h) is logging.StreamHandler for h in logger.handlers
    ):
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    logger.setLevel(logging.INFO)
    return logger


def close_logging() -> None:
    """Detach and close every handler setup_logging added."""
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def log_event(
    event: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    """
    Log one activity line. Details are appended as key=value pairs and the
    event code is kept on the record for filtering.
    """
    text = message
    if details:
        text += " (" + ", ".join(f"{k}={v}" for k, v in details.items()) + ")"
    logger.log(level, text, extra={"event": event})
