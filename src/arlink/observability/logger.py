"""Structured JSON logger for arlink.

Each record becomes one JSON line, so an editor host can forward it to its
output channel unchanged::

    {"ts": "2025-07-01T12:00:00.123456+00:00", "level": "INFO",
     "logger": "arlink.submitter", "message": "Transaction accepted",
     "op": "submit", "tx_id": "abc123", "attempt": 1}

Structured fields travel in ``extra={"extra_fields": {...}}`` and are run
through :func:`~arlink.utils.redact.redact` before they are written, so a
wallet key or a signed payload handed to a log call is never printed in
full.

Components never look loggers up themselves.  The client calls
:func:`get_logger` once and hands each component a child::

    log = get_logger()
    submitter = TransactionSubmitter(..., logger=log.getChild("submitter"))
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any

from arlink.utils.redact import redact

_CORE_KEYS = ("ts", "level", "logger", "message")


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    The keys ``ts``, ``level``, ``logger`` and ``message`` are always
    present and cannot be overridden by extra fields.  ``exception`` and
    ``stack_info`` are added when the record carries them.  Values that
    are not JSON-native (``Decimal``, ``Path`` ...) are written with
    ``str()``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {}

        fields = getattr(record, "extra_fields", None)
        if isinstance(fields, dict):
            entry.update(
                (k, v) for k, v in redact(fields).items() if k not in _CORE_KEYS
            )

        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **entry,
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, default=str)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


_registry_lock = threading.Lock()
_configured: set[str] = set()


def get_logger(
    name: str = "arlink",
    *,
    level: int | str = logging.DEBUG,
    stream: Any | None = None,
) -> logging.Logger:
    """Return the structured logger *name*, attaching a handler once.

    Parameters
    ----------
    name:
        Logger name.  Children created with :meth:`logging.Logger.getChild`
        write through this logger's handler.
    level:
        Minimum level, an ``int`` or a name such as ``"warning"``.
    stream:
        Handler stream.  Defaults to ``sys.stderr``.

    Raises
    ------
    ValueError
        If *level* is an unknown level name.
    """
    logger = logging.getLogger(name)
    with _registry_lock:
        if name in _configured:
            return logger
        logger.setLevel(_resolve_level(level))
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        # Records would otherwise be printed again by root handlers.
        logger.propagate = False
        _configured.add(name)
    return logger
