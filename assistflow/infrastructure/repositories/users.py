from __future__ import annotations

from datetime import UTC, datetime

from assistflow.domain.models import Permission, Role, User
from assistflow.infrastructure.db.models import RoleModel, UserModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload


def aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def role_to_domain(model: RoleModel) -> Role:
    return Role(
        name=model.name,
        description=model.description,
        permissions=frozenset(
            Permission(module=perm.module, action=perm.action) for perm in model.permissions
        ),
    )


def user_to_domain(model: UserModel) -> User:
    return User(
        user_id=model.id,
        email=model.email,
        name=model.full_name or "",
        roles=tuple(role_to_domain(role) for role in model.roles),
        is_active=model.is_active,
    )


def _with_grants():
    return selectinload(UserModel.roles).selectinload(RoleModel.permissions)


class SqlUserRepository:
    """Loads users together with their roles and permissions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_model(self, user_id: str) -> UserModel | None:
        stmt = (
            select(UserModel)
            .where(UserModel.id == user_id)
            .options(_with_grants())
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_by_email(self, email: str) -> UserModel | None:
        stmt = (
            select(UserModel)
            .where(UserModel.email == email.strip().lower())
            .options(_with_grants())
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_actor(self, user_id: str) -> User | None:
        """Current grants for ``user_id``, read from storage on every call."""
        model = await self.get_model(user_id)
        return user_to_domain(model) if model else None

    async def add_user(
        self,
        *,
        email: str,
        hashed_password: str,
        full_name: str | None = None,
        is_active: bool = True,
        user_id: str | None = None,
    ) -> UserModel:
        model = UserModel(
            email=email.strip().lower(),
            hashed_password=hashed_password,
            full_name=full_name,
            is_active=is_active,
        )
        if user_id:
            model.id = user_id
        model.roles = []
        self.session.add(model)
        await self.session.flush()
        return model

    async def touch_last_login(self, model: UserModel) -> None:
        model.last_login_at = datetime.now(UTC)
        await self.session.flush()

    async def list_users(self) -> list[User]:
        stmt = select(UserModel).options(_with_grants()).order_by(UserModel.email)
        result = await self.session.scalars(stmt)
        return [user_to_domain(model) for model in result]
