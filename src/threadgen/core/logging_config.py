"""Logging setup for generation runs."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for a run.

    Args:
        level: Level name, e.g. ``"DEBUG"``. Case-insensitive.
    """
    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)
