from __future__ import annotations

from assistflow.infrastructure.db.models import PermissionModel, RoleModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload


class SqlRbacRepository:
    """Role and permission reference data."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_permissions(self) -> list[PermissionModel]:
        stmt = select(PermissionModel).order_by(PermissionModel.module, PermissionModel.action)
        return list(await self.session.scalars(stmt))

    async def get_permission(self, module: str, action: str) -> PermissionModel | None:
        stmt = select(PermissionModel).where(
            PermissionModel.module == module, PermissionModel.action == action
        )
        return await self.session.scalar(stmt)

    async def add_permission(
        self, module: str, action: str, description: str | None = None
    ) -> PermissionModel:
        model = PermissionModel(module=module, action=action, description=description)
        self.session.add(model)
        await self.session.flush()
        return model

    async def list_roles(self) -> list[RoleModel]:
        stmt = (
            select(RoleModel)
            .options(selectinload(RoleModel.permissions))
            .order_by(RoleModel.name)
            .execution_options(populate_existing=True)
        )
        return list(await self.session.scalars(stmt))

    async def get_role(self, name: str) -> RoleModel | None:
        stmt = (
            select(RoleModel)
            .where(RoleModel.name == name)
            .options(selectinload(RoleModel.permissions))
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def add_role(self, name: str, description: str | None = None) -> RoleModel:
        model = RoleModel(name=name, description=description)
        model.permissions = []
        self.session.add(model)
        await self.session.flush()
        return model
