"""Logging for the ``usersync`` logger tree.

Log lines go to stderr so command output on stdout stays parseable.
``LOG_FORMAT=json`` (the default, what Cloud Logging ingests) writes one
object per line; ``LOG_FORMAT=text`` is for a terminal.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

LOGGER_NAME = "usersync"
FORMATS = ("json", "text")

# Attributes passed via ``extra=`` that are worth keeping. ``counts`` holds
# a SyncResult dict; LogRecord reserves ``created`` so the counters cannot
# be spread into ``extra`` directly.
_CONTEXT_FIELDS = (
    "command",
    "source",
    "uid",
    "email",
    "counts",
    "collection",
    "doc_id",
    "dry_run",
)


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: getattr(record, key)
        for key in _CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class CommandFilter(logging.Filter):
    """Stamp every record with the subcommand being run."""

    def __init__(self, command: str) -> None:
        super().__init__()
        self.command = command

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "command", None) is None:
            record.command = self.command
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``LEVEL logger: message key=value ...``"""

    def __init__(self) -> None:
        super().__init__("%(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        context.pop("command", None)
        if not context:
            return line
        pairs = " ".join(f"{k}={json.dumps(v, default=str)}" for k, v in context.items())
        first, sep, rest = line.partition("\n")
        return f"{first} {pairs}{sep}{rest}"


def configure_logging(level: str = "INFO", fmt: str = "json", command: Optional[str] = None) -> logging.Logger:
    """Route the ``usersync`` tree to a single stderr handler.

    Calling it again replaces the handler rather than stacking another.
    """
    fmt = (fmt or "json").lower()
    if fmt not in FORMATS:
        raise ValueError(f"LOG_FORMAT must be one of {', '.join(FORMATS)}, got {fmt!r}")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if fmt == "json" else TextFormatter())
    if command:
        handler.addFilter(CommandFilter(command))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False
    return logger
