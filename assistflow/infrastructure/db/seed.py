"""Idempotent loader for the RBAC reference data."""

from __future__ import annotations

import structlog
from assistflow.domain.models import Permission
from assistflow.domain.reference_data import (
    PERMISSION_DEFINITIONS,
    ROLE_DEFINITIONS,
    ROLE_PERMISSIONS,
)
from assistflow.infrastructure.repositories.rbac import SqlRbacRepository
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def seed_reference_data(session: AsyncSession) -> None:
    """Create missing permissions and roles, then top up each role's grants."""
    repo = SqlRbacRepository(session)

    permissions = {}
    for definition in PERMISSION_DEFINITIONS:
        model = await repo.get_permission(definition["module"], definition["action"])
        if model is None:
            model = await repo.add_permission(**definition)
        permissions[f"{model.module}.{model.action}"] = model

    for definition in ROLE_DEFINITIONS:
        role = await repo.get_role(definition["name"])
        if role is None:
            role = await repo.add_role(definition["name"], definition["description"])
        for capability in ROLE_PERMISSIONS.get(role.name, []):
            model = permissions[str(Permission.parse(capability))]
            if model not in role.permissions:
                role.permissions.append(model)

    await session.commit()
    await logger.ainfo(
        "reference_data_seeded",
        permissions=len(permissions),
        roles=len(ROLE_DEFINITIONS),
    )
