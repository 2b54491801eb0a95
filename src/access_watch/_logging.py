from __future__ import annotations

import logging
import os

_ENV_VAR = "ACCESS_WATCH_LOG_LEVEL"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


def _env_log_level(default: int = logging.WARNING) -> int:
    """Resolve the package log level from ``ACCESS_WATCH_LOG_LEVEL``.

    Accepts level names (case-insensitive) or numeric levels. Unknown values
    fall back to ``default``.
    """
    raw = (os.getenv(_ENV_VAR) or "").strip()
    if not raw:
        return default
    if raw.isdigit():
        try:
            return int(raw)
        except ValueError:
            return default
    return _LEVELS.get(raw.upper(), default)


logger = logging.getLogger("access_watch")
logger.setLevel(_env_log_level())
logger.addHandler(logging.NullHandler())
