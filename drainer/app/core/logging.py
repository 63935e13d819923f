"""loguru sink configuration for the drainer process."""
from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "{extra[event]} {message} | {extra}"
)


def configure_logging(level: str = "INFO", *, log_file: str | None = None, json: bool = False) -> None:
    """Replace the default stderr sink; optionally mirror logs to a file."""
    logger.remove()
    logger.configure(extra={"event": ""})
    if json:
        logger.add(sys.stderr, level=level.upper(), serialize=True)
    else:
        logger.add(sys.stderr, level=level.upper(), format=TEXT_FORMAT)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level=level.upper(), serialize=json, format=TEXT_FORMAT, enqueue=True)
