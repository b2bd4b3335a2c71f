"""
Cross-entity audit recorder.

Security and compliance events (logins, request creation, validations,
denied attempts) land here. This log is separate from the per-request history
ledger and never blocks the operation that produced the event.
"""

from __future__ import annotations

from typing import Protocol

import structlog
from assistflow.domain.models import AuditAction, AuditContext, AuditEntry

logger = structlog.get_logger()


class AuditSink(Protocol):
    async def write(self, entry: AuditEntry) -> None: ...


class AuditRecorder:
    """Best-effort writer in front of an ``AuditSink``."""

    def __init__(self, sink: AuditSink) -> None:
        self.sink = sink

    async def record(
        self,
        *,
        actor_id: str | None,
        action: AuditAction,
        entity_type: str | None = None,
        entity_id: str | None = None,
        details: str | None = None,
        context: AuditContext | None = None,
    ) -> None:
        context = context or AuditContext()
        entry = AuditEntry(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        try:
            await self.sink.write(entry)
        except Exception as exc:
            # audit must not break the main flow
            await logger.awarning(
                "audit_record_failed",
                action=action.value,
                entity_type=entity_type,
                entity_id=entity_id,
                error=str(exc),
            )
