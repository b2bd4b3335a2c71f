from __future__ import annotations

import structlog
from assistflow.infrastructure.repositories.audit import SqlAuditRepository
from assistflow.infrastructure.repositories.rbac import SqlRbacRepository
from assistflow.infrastructure.repositories.requests import SqlRequestRepository
from assistflow.infrastructure.repositories.users import SqlUserRepository
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = structlog.get_logger()


class UnitOfWork:
    """One database transaction spanning every repository it exposes.

    Commits on a clean exit and rolls back when the block raises.
    """

    requests: SqlRequestRepository
    users: SqlUserRepository
    rbac: SqlRbacRepository
    audit: SqlAuditRepository

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> UnitOfWork:
        self.session = self.session_factory()
        self.requests = SqlRequestRepository(self.session)
        self.users = SqlUserRepository(self.session)
        self.rbac = SqlRbacRepository(self.session)
        self.audit = SqlAuditRepository(self.session)
        logger.debug("uow_enter")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc:
                await self.rollback()
            else:
                await self.commit()
        finally:
            if self.session is not None:
                await self.session.close()
            self.session = None
        logger.debug("uow_exit", exc_type=str(exc_type) if exc_type else None)

    async def commit(self) -> None:
        if self.session is not None:
            await self.session.commit()
        logger.debug("uow_commit")

    async def rollback(self) -> None:
        if self.session is not None:
            await self.session.rollback()
        logger.debug("uow_rollback")
