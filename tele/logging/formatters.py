"""Formatters that append run context and ``extra`` fields to each line.

Fields come from two places: the capture id and stage bound by the
orchestrator (see ``tele.logging.context``) and whatever a call site passes
through ``extra=``, e.g. ``service``, ``attempt``, ``elapsed_ms`` and
``status_code`` from the resilient client.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any, ClassVar

from tele.logging.context import run_fields

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)),
) | {"message", "asctime", "taskName"}


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the run context followed by the record's ``extra`` fields."""
    fields: dict[str, Any] = run_fields()
    for key, value in vars(record).items():
        if key not in _RECORD_ATTRS and not key.startswith("_"):
            fields[key] = value
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Keys: ``ts``, ``level``, ``app``, ``logger``, ``msg``, optionally
    ``src``, then the run context and ``extra`` fields, then ``exc`` when
    the record carries an exception.
    """

    def __init__(self, *, app_name: str = "tele-develop", show_location: bool = False) -> None:
        super().__init__()
        self._app_name = app_name
        self._show_location = show_location

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "app": self._app_name,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if self._show_location:
            entry["src"] = f"{record.module}:{record.funcName}:{record.lineno}"
        entry.update(record_fields(record))
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class HumanFormatter(logging.Formatter):
    """Compact terminal lines: ``12:04:05.123 WARNING tele.services.client: msg  key=value``."""

    LEVEL_COLORS: ClassVar[dict[int, str]] = {
        logging.DEBUG: "\033[2m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self, *, use_colors: bool = False, show_location: bool = False) -> None:
        fmt = "%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s"
        if show_location:
            fmt += " (%(module)s:%(lineno)d)"
        super().__init__(fmt=fmt + ": %(message)s", datefmt="%H:%M:%S")
        self._use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        record.asctime = self.formatTime(record, self.datefmt)
        line = self.formatMessage(record)

        fields = record_fields(record)
        if fields:
            line += "  " + " ".join(f"{key}={value}" for key, value in fields.items())

        color = self.LEVEL_COLORS.get(record.levelno) if self._use_colors else None
        if color:
            line = f"{color}{line}{self.RESET}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line
