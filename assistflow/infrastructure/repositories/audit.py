from __future__ import annotations

from dataclasses import dataclass

from assistflow.domain.models import AuditAction, AuditEntry, Page
from assistflow.infrastructure.db.models import AuditLogModel
from assistflow.infrastructure.repositories.users import aware
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def _entry_to_domain(model: AuditLogModel) -> AuditEntry:
    return AuditEntry(
        actor_id=model.actor_id,
        action=model.action,
        entity_type=model.entity_type,
        entity_id=model.entity_id,
        details=model.details,
        ip_address=model.ip_address,
        user_agent=model.user_agent,
        created_at=aware(model.created_at),
        id=model.id,
    )


class SqlAuditSink:
    """Writes each entry in its own transaction, outside the caller's session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def write(self, entry: AuditEntry) -> None:
        async with self.session_factory() as session:
            session.add(
                AuditLogModel(
                    actor_id=entry.actor_id,
                    action=entry.action,
                    entity_type=entry.entity_type,
                    entity_id=entry.entity_id,
                    details=entry.details,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    created_at=entry.created_at,
                )
            )
            await session.commit()


@dataclass(slots=True)
class AuditFilters:
    actor_id: str | None = None
    action: AuditAction | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    page: int = 1
    limit: int = 20


class SqlAuditRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_entries(self, filters: AuditFilters) -> Page:
        conditions = []
        if filters.actor_id:
            conditions.append(AuditLogModel.actor_id == filters.actor_id)
        if filters.action:
            conditions.append(AuditLogModel.action == filters.action)
        if filters.entity_type:
            conditions.append(AuditLogModel.entity_type == filters.entity_type)
        if filters.entity_id:
            conditions.append(AuditLogModel.entity_id == filters.entity_id)

        total = await self.session.scalar(
            select(func.count()).select_from(AuditLogModel).where(*conditions)
        )
        stmt = (
            select(AuditLogModel)
            .where(*conditions)
            .order_by(AuditLogModel.created_at.desc(), AuditLogModel.id.desc())
            .offset((max(filters.page, 1) - 1) * filters.limit)
            .limit(filters.limit)
        )
        rows = await self.session.scalars(stmt)
        return Page(
            items=[_entry_to_domain(model) for model in rows],
            total=total or 0,
            page=filters.page,
            limit=filters.limit,
        )
