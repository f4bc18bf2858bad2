"""Root logger setup for the control plane.

One stdout handler, JSON or plain. Driver and migration loggers are held at
WARNING unless the process runs at DEBUG.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from . import fields
from .context import bind_context, get_context

_CHATTY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "alembic.runtime.migration")


class ContextFilter(logging.Filter):
    """Attach the bound context to each record as ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_context()
        record.context = context
        for key, value in context.items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        payload: dict[str, Any] = {
            fields.TIMESTAMP: created.isoformat(),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
            **(getattr(record, "context", None) or {}),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """``<time> <LEVEL> <logger> <message> key=value ...`` lines for terminals."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None) or {}
        pairs = [f"{key}={context[key]}" for key in sorted(context)]
        return " ".join([line, *pairs])


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    service: str | None = None,
    environment: str | None = None,
) -> None:
    """Install the stdout handler, replacing any earlier one."""
    level = level.upper()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())
    root.addHandler(handler)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if level == "DEBUG" else logging.WARNING
        )

    bind_context(
        **{fields.SERVICE: service or None, fields.ENVIRONMENT: environment or None}
    )


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)
