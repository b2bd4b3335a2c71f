from __future__ import annotations

from assistflow.api.deps import issue_smoke_token
from assistflow.domain.models import AssistanceRequest, AuditEntry, Permission, Role, User
from assistflow.domain.reference_data import ROLE_PERMISSIONS
from assistflow.infrastructure.repositories import UnitOfWork
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

PASSWORD = "s3cret-password"


def make_role(name: str) -> Role:
    return Role(
        name=name,
        permissions=frozenset(Permission.parse(code) for code in ROLE_PERMISSIONS[name]),
    )


def make_user(user_id: str, *role_names: str, is_active: bool = True) -> User:
    """In-memory actor holding the seeded permissions of ``role_names``."""
    return User(
        user_id=user_id,
        email=f"{user_id}@example.com",
        roles=tuple(make_role(name) for name in role_names),
        is_active=is_active,
    )


def make_request(requester_id: str = "requester", **overrides) -> AssistanceRequest:
    values = {
        "id": "req-1",
        "reference": "EN-ASSGEN0001-2026",
        "requester_id": requester_id,
        "title": "Imprimante en panne",
        "description": "L'imprimante du 2e étage ne répond plus.",
    }
    values.update(overrides)
    return AssistanceRequest(**values)


def auth_headers(user: User) -> dict[str, str]:
    token = issue_smoke_token(user.user_id, email=user.email)
    return {"Authorization": f"Bearer {token}"}


class MemoryAuditSink:
    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def write(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def actions(self) -> list[str]:
        return [entry.action.value for entry in self.entries]


class RecordingNotificationSink:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    async def notify(self, recipient_user_id: str, event: str, request_reference: str) -> None:
        self.sent.append((recipient_user_id, event, request_reference))


class FailingSink:
    """Audit and notification sink whose every write fails."""

    async def write(self, entry: AuditEntry) -> None:
        raise RuntimeError("audit storage unavailable")

    async def notify(self, recipient_user_id: str, event: str, request_reference: str) -> None:
        raise RuntimeError("mail relay unavailable")


async def create_account(
    session_factory: async_sessionmaker[AsyncSession],
    email: str,
    *role_names: str,
    password_hash: str,
    is_active: bool = True,
) -> User:
    """Store an account holding the seeded roles ``role_names``."""
    async with UnitOfWork(session_factory) as uow:
        model = await uow.users.add_user(
            email=email,
            hashed_password=password_hash,
            full_name=email.split("@")[0].title(),
            is_active=is_active,
        )
        for name in role_names:
            model.roles.append(await uow.rbac.get_role(name))
        await uow.session.flush()
        return await uow.users.get_actor(model.id)
