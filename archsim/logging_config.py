"""Opt-in logging for archsim.

Nothing is printed unless asked for: the package attaches a ``NullHandler``
to the ``archsim`` logger at import. The helpers here attach real handlers.

    import archsim

    archsim.enable_console_logging("DEBUG")
    archsim.set_module_level("engine.cascade", "WARNING")

or, for scripts driven by the environment::

    ARCHSIM_LOGGING=DEBUG ARCHSIM_LOG_FILE=runs/sim.log python my_run.py

with ``archsim.configure_from_env()`` called at startup.

Environment variables:
    ARCHSIM_LOGGING: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    ARCHSIM_LOG_FILE: Write to this size-rotated file instead of stderr.
    ARCHSIM_LOG_JSON: "1", "true" or "yes" for JSON lines.

Records logged with ``extra={"tick": ..., "component_id": ...}`` keep those
fields as top-level keys in JSON output, so a run log can be filtered by tick
or component.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Literal

__all__ = [
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_logging",
    "set_level",
    "set_module_level",
]

LOGGER_NAME = "archsim"

DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 3

CONTEXT_FIELDS = ("tick", "component_id", "chaos_id")

_TRUTHY = {"1", "true", "yes"}

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Always carries ``timestamp`` (UTC, ISO 8601), ``level``, ``logger`` and
    ``message``; adds ``exception`` when a traceback is attached and any of
    ``CONTEXT_FIELDS`` passed through ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _resolve_level(level: str | int) -> int:
    """Level name or number to a number. Unknown names mean INFO."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _archsim_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def _remove_handlers() -> None:
    """Close and detach every handler except NullHandlers."""
    logger = _archsim_logger()
    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            continue
        logger.removeHandler(handler)
        handler.close()


def _install(handler: logging.Handler, formatter: logging.Formatter,
             level: LogLevel | int) -> logging.Handler:
    numeric = _resolve_level(level)
    handler.setFormatter(formatter)
    handler.setLevel(numeric)
    logger = _archsim_logger()
    logger.setLevel(numeric)
    logger.addHandler(handler)
    return handler


def _rotating_file(path: str | Path, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count,
                               encoding="utf-8")


def enable_console_logging(
    level: LogLevel | int = "INFO",
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> logging.StreamHandler:
    """Send archsim records to stderr.

    Returns:
        The attached handler, for later removal or tweaking.
    """
    return _install(logging.StreamHandler(), logging.Formatter(format, date_format), level)


def enable_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> RotatingFileHandler:
    """Send archsim records to a rotating file.

    Args:
        path: Log file. Missing parent directories are created.
        level: Level name or number.
        max_bytes: Roll over once the file reaches this size.
        backup_count: Rolled files to keep.
        format: Record format string.
        date_format: Format of ``%(asctime)s``.
    """
    handler = _rotating_file(path, max_bytes, backup_count)
    return _install(handler, logging.Formatter(format, date_format), level)


def enable_json_logging(
    level: LogLevel | int = "INFO",
    path: str | Path | None = None,
) -> logging.Handler:
    """Send archsim records as JSON lines to stderr, or to ``path`` if given."""
    if path is None:
        handler: logging.Handler = logging.StreamHandler()
    else:
        handler = _rotating_file(path, DEFAULT_MAX_BYTES, DEFAULT_BACKUP_COUNT)
    return _install(handler, JsonFormatter(), level)


def configure_from_env() -> logging.Handler | None:
    """Attach a handler described by the ``ARCHSIM_LOG*`` variables.

    A log file alone implies INFO. With neither a level nor a file set this
    is a no-op.

    Returns:
        The attached handler, or None if nothing was configured.
    """
    level = os.environ.get("ARCHSIM_LOGGING", "").strip().upper()
    log_file = os.environ.get("ARCHSIM_LOG_FILE", "").strip()
    as_json = os.environ.get("ARCHSIM_LOG_JSON", "").strip().lower() in _TRUTHY

    if not (level or log_file):
        return None
    level = level or "INFO"

    if as_json:
        return enable_json_logging(level, path=log_file or None)
    if log_file:
        return enable_file_logging(log_file, level=level)
    return enable_console_logging(level)


def set_level(level: LogLevel | int) -> None:
    _archsim_logger().setLevel(_resolve_level(level))


def set_module_level(module: str, level: LogLevel | int) -> None:
    """Override the level below ``archsim``, e.g. ``set_module_level("engine.tick", "DEBUG")``."""
    logging.getLogger(f"{LOGGER_NAME}.{module}").setLevel(_resolve_level(level))


def disable_logging() -> None:
    """Drop every handler and mute the ``archsim`` logger entirely."""
    _remove_handlers()
    logger = _archsim_logger()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.CRITICAL + 1)
