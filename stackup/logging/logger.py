# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Logging for stackup.

Two audiences read our output. The person running the setup wants short,
readable progress lines in the terminal. Whoever debugs a failed run later
wants everything, including the full output of every conda and pip call, in
the log file. So the `stackup` logger gets two handlers:

  - console: human-readable lines at the requested level, prefixed with a
    status marker ("==>", "[ok]", "[note]", "[warn]")
  - file:    one JSON object per line at DEBUG, with ts/level/module/msg plus
             any `extra` fields the caller attached

Modules never attach handlers themselves. They call `get_logger(__name__)`
and their records propagate up to the `stackup` logger, which
`configure_logging` sets up once per run.

Callers pick the console marker with `extra={"status": "ok"}` (or "step",
"note"). Without one, warnings and errors get "[warn]"/"[error]" and
everything else is printed bare.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "stackup"

_STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "relativeCreated",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "pathname",
    "filename",
    "module",
    "levelno",
    "levelname",
    "processName",
    "process",
    "threadName",
    "thread",
    "message",
    "msecs",
    "taskName",
}

_STATUS_MARKERS = {
    "step": "==>",
    "ok": "[ok]",
    "note": "[note]",
    "warn": "[warn]",
}


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Each entry has ts (ISO 8601 UTC), level, module (the logger name) and msg,
    plus whatever the caller passed through `extra`.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short human-readable lines for the terminal. Extra fields are left to the log file."""

    def format(self, record: logging.LogRecord) -> str:
        status = getattr(record, "status", None)
        marker = _STATUS_MARKERS.get(status) if status else None
        if marker is None:
            if record.levelno >= logging.ERROR:
                marker = "[error]"
            elif record.levelno >= logging.WARNING:
                marker = "[warn]"

        message = record.getMessage()
        return f"{marker} {message}" if marker else message


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


def configure_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up the console and file handlers on the `stackup` logger.

    Calling this again replaces the previous handlers (and closes the old log
    file), which keeps tests from stacking duplicate output.

    Args:
        log_level: Console verbosity. One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
        log_file: Where the JSON log goes. The file always receives DEBUG.

    Returns:
        The configured `stackup` logger.
    """
    level = _resolve_log_level(log_level)
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter())
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JsonFormatter())
        logger.addHandler(file_handler)

    # Don't propagate to the root logger, we handle all output ourselves.
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a stackup module.

    Names outside the `stackup.` hierarchy are nested under it so their
    records still reach the configured handlers.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
