"""Log rendering for mocksandbox.

Modules log through the standard library (``logging.getLogger(__name__)``).
This module decides how the ``mocksandbox`` hierarchy is rendered: JSON
lines when ``--json-logs`` (or ``MOCKSANDBOX_JSON_LOGS=true``) is set,
compact terminal lines otherwise. Pipeline stages bind ``run_id`` and
``stage`` with ``log_context`` so every line says where it came from.

Example:
    >>> configure_logging(level="DEBUG")
    >>> with log_context(run_id="3f2a", stage="discover"):
    ...     logging.getLogger("mocksandbox.discovery").info("Scanning")
    12:01:07 I 3f2a/discover mocksandbox.discovery: Scanning
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

import click

ROOT_LOGGER = "mocksandbox"
JSON_LOGS_ENV = "MOCKSANDBOX_JSON_LOGS"

_bound: ContextVar[dict[str, Any] | None] = ContextVar("mocksandbox_log_fields", default=None)

# LogRecord attributes; whatever else a record carries came from ``extra=``.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys() | {"message", "asctime"}
)

LEVEL_STYLES: dict[int, dict[str, Any]] = {
    logging.DEBUG: {"fg": "cyan"},
    logging.INFO: {"fg": "green"},
    logging.WARNING: {"fg": "yellow"},
    logging.ERROR: {"fg": "red", "bold": True},
    logging.CRITICAL: {"fg": "magenta", "bold": True},
}


def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Fields attached to ``record`` through ``extra=``."""
    return {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Bound context (``run_id``, ``stage``) sits at the top level next to the
    message; ``extra=`` fields go under ``data``.

    Args:
        include_location: Add a ``where`` field (``file:line``).
        static_fields: Fields added to every record unless already present.
    """

    def __init__(
        self,
        include_location: bool = False,
        static_fields: dict[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.include_location = include_location
        self.static_fields = static_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": round(record.created, 3),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(get_context())
        if self.include_location:
            entry["where"] = f"{record.pathname}:{record.lineno}"

        data = extra_fields(record)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)

        for key, value in self.static_fields.items():
            entry.setdefault(key, value)
        return json.dumps(entry, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """``HH:MM:SS L run/stage logger: message key=value`` lines for a terminal."""

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        isatty = getattr(sys.stderr, "isatty", None)
        self.use_colors = use_colors and not os.environ.get("NO_COLOR") and bool(isatty and isatty())

    def _level(self, record: logging.LogRecord) -> str:
        letter = record.levelname[:1]
        if not self.use_colors:
            return letter
        return click.style(letter, **LEVEL_STYLES.get(record.levelno, {}))

    def format(self, record: logging.LogRecord) -> str:
        parts = [time.strftime("%H:%M:%S", time.localtime(record.created)), self._level(record)]

        context = get_context()
        where = "/".join(str(context.pop(key)) for key in ("run_id", "stage") if key in context)
        if where:
            parts.append(where)
        parts.append(f"{record.name}: {record.getMessage()}")

        fields = {**context, **extra_fields(record)}
        parts.extend(f"{key}={value}" for key, value in fields.items())

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool | None = None,
    include_location: bool = False,
    stream: Any | None = None,
) -> logging.Logger:
    """Route the ``mocksandbox`` logger hierarchy to one handler.

    Calling it again replaces the previous handler.

    Args:
        level: Minimum level, as a number or a name such as "DEBUG".
        json_format: Emit JSON lines. None reads MOCKSANDBOX_JSON_LOGS.
        include_location: Add the source location to JSON lines.
        stream: Output stream, sys.stderr by default.
    """
    if json_format is None:
        json_format = os.environ.get(JSON_LOGS_ENV, "").lower() in ("1", "true", "yes")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        StructuredFormatter(include_location=include_location)
        if json_format
        else HumanReadableFormatter()
    )

    logger = logging.getLogger(ROOT_LOGGER)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every record rendered inside the block."""
    token = _bound.set({**get_context(), **fields})
    try:
        yield
    finally:
        _bound.reset(token)


def get_context() -> dict[str, Any]:
    return dict(_bound.get() or {})
