"""
Structured logging for cached stores.

Store records carry a fixed set of context fields: the collection, the
operation, the effective policy, and the provenance of the response the
record is about (backend name and whether it came from the network).
``StoreLoggerAdapter`` attaches them, ``provenance`` builds them from a
``ResponseInfo``, and ``StructuredJsonFormatter`` renders them as a nested
``store`` object so a log collector can filter on them.

Enable JSON output with ``StoreConfig(log_format="json")`` or
``CACHED_STORE_LOG_FORMAT=json``; ``CachedStore.create`` then calls
``configure_structured_logging``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import IO, TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .operations import Operation, ResponseInfo

ROOT_LOGGER = "cached_store"

# Order in which context fields appear in the "store" object.
STORE_CONTEXT_FIELDS = ("collection", "operation", "policy", "backend", "network")

_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


def provenance(info: ResponseInfo, operation: Operation | None = None) -> dict[str, Any]:
    """Context fields describing where a response or error came from."""
    context: dict[str, Any] = {"backend": info.backend, "network": info.network}
    if operation is not None:
        context["operation"] = operation.value
    return context


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredJsonFormatter(logging.Formatter):
    """
    Render records as single-line JSON.

    Output shape::

        {"timestamp": ..., "level": ..., "logger": ..., "message": ...,
         "store": {"collection": ..., "operation": ..., "policy": ...,
                   "backend": ..., "network": ...},
         "extra": {...}, "exception": "..."}

    ``store`` holds whichever context fields the record carries; any other
    caller-supplied attributes go under ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        store = {
            name: _plain(getattr(record, name))
            for name in STORE_CONTEXT_FIELDS
            if hasattr(record, name)
        }
        if store:
            entry["store"] = store

        extra = {
            key: _plain(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
            and key not in STORE_CONTEXT_FIELDS
            and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


class _StructuredHandler(logging.StreamHandler):
    """Marker type so reconfiguration replaces only handlers installed here."""


def configure_structured_logging(
    level: int | str = logging.INFO,
    logger_name: str = ROOT_LOGGER,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """
    Send store logs to ``stream`` (default: stdout) as structured JSON.

    Calling it again replaces the handler it installed before; handlers
    added by the host application are left alone.

    Args:
        level: Logging level for the store loggers
        logger_name: Logger to configure (default: the package logger)
        stream: Destination stream

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    for handler in [h for h in logger.handlers if isinstance(h, _StructuredHandler)]:
        logger.removeHandler(handler)

    handler = _StructuredHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_store_logger(name: str) -> logging.Logger:
    """Logger named ``cached_store.{name}``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class StoreLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter carrying store context.

    Context given at the call site (``extra=``) takes precedence over the
    adapter's own. ``bind`` derives an adapter with more context, e.g. the
    operation and policy of one call.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def bind(self, **context: Any) -> StoreLoggerAdapter:
        return StoreLoggerAdapter(self.logger, {**self.extra, **context})
