from __future__ import annotations

import logging
import time
from enum import Enum
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Sequence

from settings import get_settings

# Structured fields the service and the monitor pass through ``extra``.
CONTEXT_KEYS = (
    "device_id",
    "sensor_group",
    "source",
    "kind",
    "value",
    "limit",
    "mode",
    "topic",
    "hours",
    "row_count",
    "status",
    "reason",
)

LOG_FORMAT = "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Library loggers that are noisy at INFO (httpx logs every request).
QUIET_LOGGERS = ("httpx", "httpcore", "paho")

_configured = False


def _render(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


class ContextualFormatter(logging.Formatter):
    """Appends ``key=value`` pairs for whichever context keys a record carries."""

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._context_keys: Sequence[str] = tuple(extra_keys or CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={_render(record.__dict__[key])}"
            for key in self._context_keys
            if record.__dict__.get(key) is not None
        ]
        if not context:
            return message
        return f"{message} | {' '.join(context)}"


def _handler(log_level: str | int, filename: str | None) -> Dict[str, Any]:
    handler: Dict[str, Any] = {"level": log_level, "formatter": "contextual"}
    if filename:
        handler.update({"class": "logging.FileHandler", "filename": filename, "encoding": "utf-8"})
    else:
        handler["class"] = "logging.StreamHandler"
    return handler


def configure_logging(level: str | int | None = None, filename: str | None = None) -> None:
    """Configure process-wide logging once.

    ``filename`` sends records to a file instead of stderr, which keeps the
    terminal dashboard readable while it prints.
    """
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": LOG_FORMAT,
                    "datefmt": DATE_FORMAT,
                    "extra_keys": list(CONTEXT_KEYS),
                }
            },
            "handlers": {"default": _handler(log_level, filename)},
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            "root": {"handlers": ["default"], "level": log_level},
        }
    )
    _configured = True
