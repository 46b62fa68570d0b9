"""JSON logging for the ledger service.

Ledger events are logged as a dotted event name (``distribution.created``,
``ledger.repaired``) with their ids and quantities as top-level JSON keys, so a
log search for ``item_id`` finds every stock movement of that item.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..middlewares import principal_ctx_var, request_id_ctx_var
from .config import settings

# Keys the formatter owns; event fields may not overwrite them.
_RESERVED_KEYS = frozenset({"timestamp", "level", "logger", "event", "exception"})


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line: event name, request id, principal and event fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        request_id = request_id_ctx_var.get()
        if request_id:
            payload["request_id"] = request_id
        principal = principal_ctx_var.get()
        if principal:
            payload["principal"] = principal
        fields = getattr(record, "extra_data", None)
        if isinstance(fields, Mapping):
            for key, value in fields.items():
                payload[f"field_{key}" if key in _RESERVED_KEYS else key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, exc_info: bool = False, **fields: Any) -> None:
    """Log a ledger event with its fields as top-level JSON keys."""

    logger.log(level, event, extra={"extra_data": fields}, exc_info=exc_info)


def configure_logging(level: str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    logging.root.handlers = [handler]
    logging.root.setLevel(level or settings.LOG_LEVEL)
    # request.completed already records every request with its id and timing
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
