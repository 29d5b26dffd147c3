"""Structured JSON logging for livebroker processes.

Components log through module loggers with dotted event names and broker
context passed via ``extra=``; :func:`configure_logging` renders that as
one JSON object per line.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import IO, Any, Dict, Optional, Protocol

import orjson


class Logger(Protocol):
    """Minimal logger protocol accepted by the broker components."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


# Broker context lifted to the top level of each line; other extras are nested.
CONTEXT_FIELDS = ("identity", "identities", "entity_type", "kind", "topic", "endpoint", "error")

_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render a record as ``{timestamp, level, logger, message, ...}``.

    Fields named in :data:`CONTEXT_FIELDS` sit next to ``message`` so log
    queries can filter on ``entity_type`` or ``identity`` directly. Any other
    ``extra=`` value goes under ``context``. Values orjson cannot encode are
    written as their ``repr``.
    """

    def __init__(self, *, service: Optional[str] = None) -> None:
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self._service:
            payload["service"] = self._service

        context: Dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            if key in CONTEXT_FIELDS:
                payload[key] = value
            else:
                context[key] = value
        if context:
            payload["context"] = context

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return orjson.dumps(payload, default=repr).decode()


def configure_logging(
    level: str = "INFO",
    *,
    name: str = "livebroker",
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Send root logging to ``stream`` (stderr by default) as JSON lines.

    Replaces any handlers already installed on the root logger and returns
    the logger called ``name``.
    """

    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter(service=name))
    root.addHandler(handler)
    root.setLevel(level.upper())
    return logging.getLogger(name)


__all__ = ["CONTEXT_FIELDS", "Logger", "JsonFormatter", "configure_logging"]
