"""Shared logging utilities for consistent dispatch observability.

Usage example:
    from request_dispatch.observability.logging import get_logger

    logger = get_logger("request_dispatch.dispatcher")
    logger.info("Retrying %s in %.2fs", endpoint, delay)
"""

from __future__ import annotations

import logging
import os
import time

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
_LEVEL_ENV = "DISPATCH_LOG_LEVEL"


def _resolve_level(level: str | None) -> int:
    name = (level or os.getenv(_LEVEL_ENV, "") or "INFO").strip().upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Return a standard logger configured for UTC timestamps.

    Args:
        name: Logger name (use a stable module-qualified name).
        level: Optional level name; defaults to DISPATCH_LOG_LEVEL or INFO.
            Only applied the first time a logger is configured.

    Returns:
        A logger with a single stream handler and a consistent UTC format.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
        formatter.converter = time.gmtime
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(_resolve_level(level))
        logger.propagate = False
    return logger


def set_level(level: str) -> None:
    """Apply `level` to every logger under the request_dispatch namespace."""
    resolved = _resolve_level(level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.startswith("request_dispatch"):
            logger.setLevel(resolved)
