from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from pathlib import Path

import pytest
from assistflow.api.deps import get_db_session_factory, get_notifier
from assistflow.api.main import app
from assistflow.domain.models import User
from assistflow.domain.services.audit import AuditRecorder
from assistflow.domain.services.auth_service import hash_password
from assistflow.domain.services.notifications import NotificationDispatcher
from assistflow.domain.services.requests import RequestService
from assistflow.domain.services.workflow import WorkflowService
from assistflow.infrastructure.db.base import Base
from assistflow.infrastructure.db.seed import seed_reference_data
from assistflow.infrastructure.repositories import UnitOfWork
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tests.utils import PASSWORD, MemoryAuditSink, RecordingNotificationSink, create_account


@dataclass
class Actors:
    requester: User
    other_requester: User
    verifier: User
    dec: User
    bao: User
    technician: User
    dispatcher: User
    auditor: User
    admin: User


@pytest.fixture(scope="session")
def password_hash() -> str:
    """Shared test password, hashed once per session."""
    return hash_password(PASSWORD)


@pytest.fixture()
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    # File database so each session gets its own connection
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'assistflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        await seed_reference_data(session)

    yield factory
    await engine.dispose()


@pytest.fixture()
def uow_factory(session_factory: async_sessionmaker[AsyncSession]) -> Callable[[], UnitOfWork]:
    return lambda: UnitOfWork(session_factory)


@pytest.fixture()
async def actors(session_factory: async_sessionmaker[AsyncSession], password_hash: str) -> Actors:
    async def account(email: str, *roles: str) -> User:
        return await create_account(session_factory, email, *roles, password_hash=password_hash)

    return Actors(
        requester=await account("agent@example.com", "UTILISATEUR"),
        other_requester=await account("collegue@example.com", "UTILISATEUR"),
        verifier=await account("verif@example.com", "VERIFICATEUR"),
        dec=await account("delegue@example.com", "DEC"),
        bao=await account("bao@example.com", "BAO"),
        technician=await account("tech@example.com", "TECHNICIEN"),
        dispatcher=await account("fonctionnel@example.com", "ADMIN_FONCTIONNEL"),
        auditor=await account("audit@example.com", "AUDITEUR"),
        admin=await account("root@example.com", "SUPERADMIN"),
    )


@pytest.fixture()
def audit_sink() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture()
def notification_sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture()
def workflow_service(
    uow_factory: Callable[[], UnitOfWork],
    audit_sink: MemoryAuditSink,
    notification_sink: RecordingNotificationSink,
) -> WorkflowService:
    return WorkflowService(
        uow_factory,
        AuditRecorder(audit_sink),
        notifier=NotificationDispatcher(notification_sink),
    )


@pytest.fixture()
def request_service(
    uow_factory: Callable[[], UnitOfWork], audit_sink: MemoryAuditSink
) -> RequestService:
    return RequestService(uow_factory, AuditRecorder(audit_sink))


@pytest.fixture()
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
    notification_sink: RecordingNotificationSink,
) -> AsyncIterator[AsyncClient]:
    """HTTP client bound to the app, the per-test database and a recording notifier."""
    app.dependency_overrides[get_db_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notifier] = lambda: NotificationDispatcher(notification_sink)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
