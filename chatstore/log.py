"""Package logger shared by every chatstore module."""

from __future__ import annotations

import logging

logger = logging.getLogger("chatstore")


def configure(level: str | int = logging.WARNING) -> None:
    """Attach a stderr handler to the package logger (idempotent)."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
