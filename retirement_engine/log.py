"""Opt-in logging.

The package logs through :mod:`loguru` but is disabled on import, so
embedding applications see nothing unless they ask for it::

    from retirement_engine.log import enable_logging
    enable_logging("DEBUG")
"""

from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

_PACKAGE = "retirement_engine"


def enable_logging(level: str = "INFO", sink=sys.stderr) -> int:
    """Enable package logs and route them to ``sink``; returns the handler id."""
    logger.enable(_PACKAGE)
    return logger.add(sink, level=level, filter=_PACKAGE)


def disable_logging(handler_id: Optional[int] = None) -> None:
    if handler_id is not None:
        logger.remove(handler_id)
    logger.disable(_PACKAGE)


__all__ = ["enable_logging", "disable_logging"]
