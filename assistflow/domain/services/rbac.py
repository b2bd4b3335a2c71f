"""
Role and user administration.

Grants are read from storage on every request, so changes made here apply
to the affected users immediately.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

import structlog
from assistflow.domain.errors import UnauthorizedError, WorkflowError
from assistflow.domain.models import Permission, Role, User
from assistflow.domain.reference_data import ROLE_MANAGE, ROLE_READ, USER_MANAGE, USER_READ
from assistflow.domain.services.auth_service import UserExistsError, hash_password
from assistflow.domain.services.authorization import AuthorizationGate
from assistflow.infrastructure.repositories.unit_of_work import UnitOfWork
from assistflow.infrastructure.repositories.users import role_to_domain

logger = structlog.get_logger()


class RbacError(WorkflowError):
    """Base exception for role administration errors."""


class RoleExistsError(RbacError):
    pass


class RoleNotFoundError(RbacError):
    pass


class PermissionNotFoundError(RbacError):
    pass


class AccountNotFoundError(RbacError):
    pass


class RbacService:
    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        *,
        gate: AuthorizationGate | None = None,
    ) -> None:
        self.uow_factory = uow_factory
        self.gate = gate or AuthorizationGate()

    def _require(self, actor: User, capability: Permission, action: str) -> None:
        if not self.gate.authorize(actor, capability):
            raise UnauthorizedError(actor.user_id, action, str(capability))

    async def list_permissions(self, actor: User) -> list[Permission]:
        self._require(actor, ROLE_READ, "list_permissions")
        async with self.uow_factory() as uow:
            models = await uow.rbac.list_permissions()
        return [Permission(module=m.module, action=m.action) for m in models]

    async def list_roles(self, actor: User) -> list[Role]:
        self._require(actor, ROLE_READ, "list_roles")
        async with self.uow_factory() as uow:
            models = await uow.rbac.list_roles()
            return [role_to_domain(model) for model in models]

    async def create_role(
        self,
        actor: User,
        name: str,
        description: str | None = None,
        permissions: Iterable[str] = (),
    ) -> Role:
        self._require(actor, ROLE_MANAGE, "create_role")
        name = name.strip().upper()
        async with self.uow_factory() as uow:
            if await uow.rbac.get_role(name) is not None:
                raise RoleExistsError(f"Role {name} already exists")
            role = await uow.rbac.add_role(name, description)
            for capability in permissions:
                perm = Permission.parse(capability)
                model = await uow.rbac.get_permission(perm.module, perm.action)
                if model is None:
                    raise PermissionNotFoundError(f"Permission {capability} not found")
                role.permissions.append(model)
            await uow.session.flush()
            created = role_to_domain(role)
        await logger.ainfo("role_created", role=name, actor_id=actor.user_id)
        return created

    async def grant_permission(self, actor: User, role_name: str, capability: str) -> Role:
        return await self._change_permission(actor, role_name, capability, grant=True)

    async def revoke_permission(self, actor: User, role_name: str, capability: str) -> Role:
        return await self._change_permission(actor, role_name, capability, grant=False)

    async def _change_permission(
        self, actor: User, role_name: str, capability: str, *, grant: bool
    ) -> Role:
        self._require(actor, ROLE_MANAGE, "grant_permission" if grant else "revoke_permission")
        perm = Permission.parse(capability)
        async with self.uow_factory() as uow:
            role = await uow.rbac.get_role(role_name)
            if role is None:
                raise RoleNotFoundError(f"Role {role_name} not found")
            model = await uow.rbac.get_permission(perm.module, perm.action)
            if model is None:
                raise PermissionNotFoundError(f"Permission {capability} not found")
            held = model in role.permissions
            if grant and not held:
                role.permissions.append(model)
            elif not grant and held:
                role.permissions.remove(model)
            await uow.session.flush()
            updated = role_to_domain(role)
        await logger.ainfo(
            "role_permission_granted" if grant else "role_permission_revoked",
            role=role_name,
            permission=capability,
            actor_id=actor.user_id,
        )
        return updated

    async def list_users(self, actor: User) -> list[User]:
        self._require(actor, USER_READ, "list_users")
        async with self.uow_factory() as uow:
            return await uow.users.list_users()

    async def create_user(
        self,
        actor: User,
        *,
        email: str,
        password: str,
        full_name: str | None = None,
        roles: Iterable[str] = (),
    ) -> User:
        self._require(actor, USER_MANAGE, "create_user")
        async with self.uow_factory() as uow:
            if await uow.users.get_by_email(email) is not None:
                raise UserExistsError(f"User with email {email} already exists")
            model = await uow.users.add_user(
                email=email, hashed_password=hash_password(password), full_name=full_name
            )
            for role_name in roles:
                role = await uow.rbac.get_role(role_name)
                if role is None:
                    raise RoleNotFoundError(f"Role {role_name} not found")
                model.roles.append(role)
            await uow.session.flush()
            created = await uow.users.get_actor(model.id)
        await logger.ainfo("user_created", user_id=created.user_id, actor_id=actor.user_id)
        return created

    async def assign_role(self, actor: User, user_id: str, role_name: str) -> User:
        return await self._change_role(actor, user_id, role_name, assign=True)

    async def unassign_role(self, actor: User, user_id: str, role_name: str) -> User:
        return await self._change_role(actor, user_id, role_name, assign=False)

    async def _change_role(self, actor: User, user_id: str, role_name: str, *, assign: bool) -> User:
        self._require(actor, USER_MANAGE, "assign_role" if assign else "unassign_role")
        async with self.uow_factory() as uow:
            model = await uow.users.get_model(user_id)
            if model is None:
                raise AccountNotFoundError(f"User {user_id} not found")
            role = await uow.rbac.get_role(role_name)
            if role is None:
                raise RoleNotFoundError(f"Role {role_name} not found")
            held = role in model.roles
            if assign and not held:
                model.roles.append(role)
            elif not assign and held:
                model.roles.remove(role)
            await uow.session.flush()
            updated = await uow.users.get_actor(user_id)
        await logger.ainfo(
            "user_role_assigned" if assign else "user_role_unassigned",
            user_id=user_id,
            role=role_name,
            actor_id=actor.user_id,
        )
        return updated
