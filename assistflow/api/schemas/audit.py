from __future__ import annotations

from datetime import datetime

from assistflow.domain.models import AuditAction
from pydantic import BaseModel, ConfigDict


class AuditEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    actor_id: str | None = None
    action: AuditAction
    entity_type: str | None = None
    entity_id: str | None = None
    details: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime


class AuditPage(BaseModel):
    items: list[AuditEntryOut]
    page: int
    limit: int
    total: int
    total_pages: int
