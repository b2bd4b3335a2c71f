from __future__ import annotations

from assistflow.api.deps import UowFactory, get_uow_factory, require_capability
from assistflow.api.schemas.audit import AuditEntryOut, AuditPage
from assistflow.domain import AuditAction, User
from assistflow.infrastructure.repositories import AuditFilters
from fastapi import APIRouter, Depends, Query

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=AuditPage)
async def list_audit_entries(
    actor_id: str | None = None,
    action: AuditAction | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: User = Depends(require_capability("audit.read")),  # noqa: B008
    uow_factory: UowFactory = Depends(get_uow_factory),  # noqa: B008
) -> AuditPage:
    filters = AuditFilters(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        page=page,
        limit=limit,
    )
    async with uow_factory() as uow:
        result = await uow.audit.list_entries(filters)
    return AuditPage(
        items=[AuditEntryOut.model_validate(entry) for entry in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )
