from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "strata"

_STRATA_HANDLER: logging.Handler | None = None
_CONFIGURED_LEVEL: int | None = None


def _level_from_name(name: str | int) -> int:
    if isinstance(name, int):
        return name
    level = logging.getLevelName(str(name).upper())
    if isinstance(level, int):
        return level
    return logging.WARNING


def configure_logging(level: str | int = "WARNING", *, stream: Optional[TextIO] = None) -> logging.Logger:
    """Set the ``strata`` logger level and attach one stream handler.

    Idempotent per-process: calling again with the same level is a no-op;
    a different level updates the existing handler instead of adding another.
    """
    global _STRATA_HANDLER, _CONFIGURED_LEVEL

    numeric = _level_from_name(level)
    logger = logging.getLogger(LOGGER_NAME)
    if _STRATA_HANDLER is not None and _CONFIGURED_LEVEL == numeric and stream is None:
        return logger

    logger.setLevel(numeric)
    if _STRATA_HANDLER is not None and stream is not None:
        logger.removeHandler(_STRATA_HANDLER)
        _STRATA_HANDLER.close()
        _STRATA_HANDLER = None

    if _STRATA_HANDLER is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
        _STRATA_HANDLER = handler
    _STRATA_HANDLER.setLevel(numeric)
    _CONFIGURED_LEVEL = numeric
    return logger


def reset_logging_for_tests() -> None:
    """Test-only: remove the handler installed by :func:`configure_logging`."""
    global _STRATA_HANDLER, _CONFIGURED_LEVEL
    logger = logging.getLogger(LOGGER_NAME)
    if _STRATA_HANDLER is not None:
        logger.removeHandler(_STRATA_HANDLER)
        _STRATA_HANDLER.close()
    logger.setLevel(logging.NOTSET)
    _STRATA_HANDLER = None
    _CONFIGURED_LEVEL = None


__all__ = ["LOGGER_NAME", "configure_logging", "reset_logging_for_tests"]
