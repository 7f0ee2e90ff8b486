"""JSON-lines logging for pipeline events."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from leadflow.core.config import get_config

CONTEXT_FIELDS = ("tenant_id", "lead_id", "user_id", "stage_id")


class JsonFormatter(logging.Formatter):
    """Render a record, its dotted event name and any lead context as one JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event = getattr(record, "event", None)
        if event is not None:
            payload["event"] = event
        payload.update(
            {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def _build_handlers(log_file: str) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    formatter = JsonFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging() -> None:
    """Install JSON handlers on the root logger unless something already did."""
    root = logging.getLogger()
    if root.handlers:
        return

    config = get_config()
    root.setLevel(config.LOG_LEVEL)
    for handler in _build_handlers(config.LOG_FILE):
        root.addHandler(handler)

    if config.is_production:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
