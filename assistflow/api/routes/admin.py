"""Role, permission and account administration."""

from __future__ import annotations

import structlog
from assistflow.api.deps import get_current_user, get_rbac_service
from assistflow.api.errors import http_error
from assistflow.api.schemas.admin import (
    AccountOut,
    PermissionChange,
    PermissionOut,
    RoleChange,
    RoleCreate,
    RoleOut,
    UserCreate,
)
from assistflow.domain import Role, User
from assistflow.domain.errors import WorkflowError
from assistflow.domain.services.auth_service import UserExistsError
from assistflow.domain.services.rbac import RbacService
from fastapi import APIRouter, Depends, HTTPException, status

router = APIRouter(prefix="/admin", tags=["Administration"])
logger = structlog.get_logger()


def _role_out(role: Role) -> RoleOut:
    return RoleOut(
        name=role.name,
        description=role.description,
        permissions=sorted(str(p) for p in role.permissions),
    )


def _account_out(user: User) -> AccountOut:
    return AccountOut(
        id=user.user_id,
        email=user.email,
        full_name=user.name or None,
        is_active=user.is_active,
        roles=user.role_names,
    )


@router.get("/permissions", response_model=list[PermissionOut])
async def list_permissions(
    user: User = Depends(get_current_user),  # noqa: B008
    service: RbacService = Depends(get_rbac_service),  # noqa: B008
) -> list[PermissionOut]:
    try:
        permissions = await service.list_permissions(user)
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return [PermissionOut(module=p.module, action=p.action, code=str(p)) for p in permissions]


@router.get("/roles", response_model=list[RoleOut])
async def list_roles(
    user: User = Depends(get_current_user),  # noqa: B008
    service: RbacService = Depends(get_rbac_service),  # noqa: B008
) -> list[RoleOut]:
    try:
        roles = await service.list_roles(user)
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return [_role_out(role) for role in roles]


@router.post("/roles", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RbacService = Depends(get_rbac_service),  # noqa: B008
) -> RoleOut:
    try:
        role = await service.create_role(
            user, payload.name, payload.description, payload.permissions
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return _role_out(role)


@router.post("/roles/{role_name}/permissions", response_model=RoleOut)
async def grant_permission(
    role_name: str,
    payload: PermissionChange,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RbacService = Depends(get_rbac_service),  # noqa: B008
) -> RoleOut:
    try:
        role = await service.grant_permission(user, role_name, payload.permission)
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return _role_out(role)


@router.delete("/roles/{role_name}/permissions/{permission}", response_model=RoleOut)
async def revoke_permission(
    role_name: str,
    permission: str,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RbacService = Depends(get_rbac_service),  # noqa: B008
) -> RoleOut:
    try:
        role = await service.revoke_permission(user, role_name, permission)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return _role_out(role)


@router.get("/users", response_model=list[AccountOut])
async def list_users(
    user: User = Depends(get_current_user),  # noqa: B008
    service: RbacService = Depends(get_rbac_service),  # noqa: B008
) -> list[AccountOut]:
    try:
        users = await service.list_users(user)
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return [_account_out(account) for account in users]


@router.post("/users", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RbacService = Depends(get_rbac_service),  # noqa: B008
) -> AccountOut:
    try:
        created = await service.create_user(
            user,
            email=payload.email,
            password=payload.password,
            full_name=payload.full_name,
            roles=payload.roles,
        )
    except UserExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return _account_out(created)


@router.post("/users/{user_id}/roles", response_model=AccountOut)
async def assign_role(
    user_id: str,
    payload: RoleChange,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RbacService = Depends(get_rbac_service),  # noqa: B008
) -> AccountOut:
    try:
        updated = await service.assign_role(user, user_id, payload.role)
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return _account_out(updated)


@router.delete("/users/{user_id}/roles/{role_name}", response_model=AccountOut)
async def unassign_role(
    user_id: str,
    role_name: str,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RbacService = Depends(get_rbac_service),  # noqa: B008
) -> AccountOut:
    try:
        updated = await service.unassign_role(user, user_id, role_name)
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return _account_out(updated)
