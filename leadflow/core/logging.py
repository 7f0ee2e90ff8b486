"""Structured logging helpers for pipeline events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Normalized context fields expected in structured logs."""

    tenant_id: str | None = None
    lead_id: str | None = None
    user_id: str | None = None
    stage_id: str | None = None


def log_extra(event: str, context: LogContext | None = None, **fields: Any) -> dict[str, Any]:
    """Build the ``extra`` mapping passed to ``logger.<level>`` calls."""
    context = context or LogContext()
    payload: dict[str, Any] = {
        "event": event,
        "tenant_id": context.tenant_id,
        "lead_id": context.lead_id,
        "user_id": context.user_id,
        "stage_id": context.stage_id,
    }
    payload.update(fields)
    return payload
