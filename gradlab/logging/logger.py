# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for gradlab.

Every log entry is a single JSON line with a timestamp, level, source module
and message. Anything passed through ``extra=`` is merged into the entry, which
is how the training loop attaches iteration counts, losses and run ids.

Loggers are only ever created through ``get_logger``. The training engine
logs a lot of numbers, so the formatter knows how to turn tensors and
non-finite floats into JSON-safe values instead of crashing on them.

Example line:
  {"ts": "2026-...", "level": "INFO", "module": "gradlab.training.optimizer.core",
   "msg": "Early stopping", "iteration": 41, "loss": 9.1e-05}
"""

import json
import logging
import math
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# LogRecord attributes that are plumbing, not context.
_STANDARD_ATTRS = frozenset(
    {
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
)

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

PROJECT_LOGGER = "gradlab"


def _to_json_safe(value: object) -> object:
    """Convert values json.dumps can't (or shouldn't) handle directly."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if hasattr(value, "tolist"):
        # torch tensors and anything array-like
        return value.tolist()  # type: ignore[union-attr]
    return value


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Mandatory fields: ``ts`` (ISO 8601 UTC), ``level``, ``module`` (logger
    name) and ``msg``. Extra context fields are appended after them, and the
    formatted traceback goes under ``exc`` when ``exc_info`` is set.
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
                entry[key] = _to_json_safe(value)

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create a structured JSON logger.

    Calling this twice for the same name returns the same logger with the
    level updated; handlers are only attached the first time.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
        log_file: Optional path to a log file. If provided, logs go to both
                  stdout and the file.

    Returns:
        A configured logging.Logger that outputs structured JSON.
    """
    logger = logging.getLogger(name)
    level = _resolve_log_level(log_level)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    formatter = JsonFormatter()

    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(level)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def set_project_log_level(log_level: str) -> None:
    """
    Apply a level to every gradlab logger created so far.

    Module-level loggers are created at import time with the default level,
    so the CLI calls this after parsing ``--log-level``.
    """
    level = _resolve_log_level(log_level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if name == PROJECT_LOGGER or name.startswith(PROJECT_LOGGER + "."):
            logger.setLevel(level)
            for handler in logger.handlers:
                handler.setLevel(level)
