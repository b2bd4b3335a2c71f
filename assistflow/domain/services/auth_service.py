"""Authentication service with password hashing and session audit."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

import structlog
from assistflow.core.auth import (
    TOKEN_TYPE_REFRESH,
    TokenError,
    create_access_token,
    decode_access_token,
)
from assistflow.core.config import get_settings
from assistflow.domain.models import AuditAction, AuditContext, User
from assistflow.domain.services.audit import AuditRecorder
from assistflow.domain.services.authorization import AuthorizationGate
from assistflow.infrastructure.repositories.unit_of_work import UnitOfWork
from passlib.context import CryptContext

logger = structlog.get_logger()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthError(Exception):
    """Base exception for authentication errors."""

    pass


class UserExistsError(AuthError):
    """Raised when attempting to register with existing email."""

    pass


class InvalidCredentialsError(AuthError):
    """Raised when login credentials are invalid."""

    pass


class UserNotFoundError(AuthError):
    """Raised when user is not found."""

    pass


class UserInactiveError(AuthError):
    """Raised when user account is inactive."""

    pass


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


class AuthService:
    """Service for authentication operations."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        audit: AuditRecorder,
        *,
        gate: AuthorizationGate | None = None,
    ) -> None:
        self.uow_factory = uow_factory
        self.audit = audit
        self.gate = gate or AuthorizationGate()

    async def login(
        self, *, email: str, password: str, context: AuditContext | None = None
    ) -> dict:
        """
        Authenticate user with email and password.

        Returns:
            dict with user data and tokens
        """
        await logger.ainfo("login_attempt", email=email)

        async with self.uow_factory() as uow:
            model = await uow.users.get_by_email(email)

            if model is None or not verify_password(password, model.hashed_password):
                await logger.awarning("login_invalid_credentials", email=email)
                await self.audit.record(
                    actor_id=model.id if model else None,
                    action=AuditAction.ACCESS_DENIED,
                    entity_type="user",
                    details=f"login failed for {email.lower()}",
                    context=context,
                )
                raise InvalidCredentialsError("Invalid email or password")

            if not model.is_active:
                await logger.awarning("login_inactive_user", email=email)
                raise UserInactiveError("Account is inactive")

            await uow.users.touch_last_login(model)
            user = await uow.users.get_actor(model.id)

        await self.audit.record(
            actor_id=user.user_id,
            action=AuditAction.LOGIN,
            entity_type="user",
            entity_id=user.user_id,
            context=context,
        )
        await logger.ainfo("login_success", user_id=user.user_id, email=email)

        return {
            "user": self.user_to_dict(user),
            "tokens": self._generate_tokens(user),
        }

    async def refresh(self, refresh_token: str) -> dict:
        """Trade a refresh token for a new token pair."""
        try:
            payload = decode_access_token(refresh_token, expected_type=TOKEN_TYPE_REFRESH)
        except TokenError as exc:
            raise InvalidCredentialsError("Invalid refresh token") from exc

        async with self.uow_factory() as uow:
            user = await uow.users.get_actor(payload["sub"])
        if user is None:
            raise UserNotFoundError(f"User {payload['sub']} not found")
        if not user.is_active:
            raise UserInactiveError("Account is inactive")
        return {"user": self.user_to_dict(user), "tokens": self._generate_tokens(user)}

    async def logout(self, actor: User, context: AuditContext | None = None) -> None:
        """Tokens are stateless; logging out only leaves an audit trace."""
        await self.audit.record(
            actor_id=actor.user_id,
            action=AuditAction.LOGOUT,
            entity_type="user",
            entity_id=actor.user_id,
            context=context,
        )
        await logger.ainfo("logout", user_id=actor.user_id)

    def _generate_tokens(self, user: User) -> dict:
        """Generate access and refresh tokens for user."""
        settings = get_settings()

        access_token = create_access_token(
            subject=user.user_id,
            roles=user.role_names,
            email=user.email,
            expires_delta=timedelta(seconds=settings.access_token_ttl_seconds),
        )
        refresh_token = create_access_token(
            subject=user.user_id,
            roles=user.role_names,
            email=user.email,
            expires_delta=timedelta(seconds=settings.refresh_token_ttl_seconds),
            token_type=TOKEN_TYPE_REFRESH,
        )

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": settings.access_token_ttl_seconds,
        }

    def user_to_dict(self, user: User) -> dict:
        return {
            "id": user.user_id,
            "email": user.email,
            "full_name": user.name or None,
            "is_active": user.is_active,
            "roles": user.role_names,
            "permissions": sorted(str(p) for p in self.gate.effective_capabilities(user)),
        }
