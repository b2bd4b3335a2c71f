from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache

import structlog
from assistflow.core.auth import TokenError, create_access_token, decode_access_token
from assistflow.core.config import get_settings
from assistflow.domain import AuditAction, AuditContext, Permission, User
from assistflow.domain.services.audit import AuditRecorder
from assistflow.domain.services.auth_service import AuthService
from assistflow.domain.services.authorization import AuthorizationGate
from assistflow.domain.services.dashboard import DashboardService
from assistflow.domain.services.notifications import NotificationDispatcher, NotificationSink
from assistflow.domain.services.rbac import RbacService
from assistflow.domain.services.references import ReferenceGenerator
from assistflow.domain.services.requests import RequestService
from assistflow.domain.services.workflow import WorkflowService
from assistflow.infrastructure.db.session import get_session_factory
from assistflow.infrastructure.notifications import build_notification_sink
from assistflow.infrastructure.repositories import SqlAuditSink, UnitOfWork
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)
gate = AuthorizationGate()

UowFactory = Callable[[], UnitOfWork]


def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for the configured database; tests override this."""
    return get_session_factory()


def get_uow_factory(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),  # noqa: B008
) -> UowFactory:
    return lambda: UnitOfWork(session_factory)


def get_audit_recorder(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),  # noqa: B008
) -> AuditRecorder:
    return AuditRecorder(SqlAuditSink(session_factory))


@lru_cache
def _notification_sink() -> NotificationSink:
    return build_notification_sink(get_settings())


def get_notifier() -> NotificationDispatcher:
    return NotificationDispatcher(_notification_sink())


def get_audit_context(request: Request) -> AuditContext:
    """Caller address and user agent, as reported by the transport."""
    return AuditContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_workflow_service(
    uow_factory: UowFactory = Depends(get_uow_factory),  # noqa: B008
    audit: AuditRecorder = Depends(get_audit_recorder),  # noqa: B008
    notifier: NotificationDispatcher = Depends(get_notifier),  # noqa: B008
) -> WorkflowService:
    return WorkflowService(uow_factory, audit, notifier=notifier)


def get_request_service(
    uow_factory: UowFactory = Depends(get_uow_factory),  # noqa: B008
    audit: AuditRecorder = Depends(get_audit_recorder),  # noqa: B008
) -> RequestService:
    settings = get_settings()
    references = ReferenceGenerator(
        prefix=settings.reference_prefix,
        max_attempts=settings.reference_max_attempts,
    )
    return RequestService(uow_factory, audit, references=references)


def get_dashboard_service(
    uow_factory: UowFactory = Depends(get_uow_factory),  # noqa: B008
) -> DashboardService:
    return DashboardService(uow_factory)


def get_rbac_service(
    uow_factory: UowFactory = Depends(get_uow_factory),  # noqa: B008
) -> RbacService:
    return RbacService(uow_factory)


def get_auth_service(
    uow_factory: UowFactory = Depends(get_uow_factory),  # noqa: B008
    audit: AuditRecorder = Depends(get_audit_recorder),  # noqa: B008
) -> AuthService:
    return AuthService(uow_factory, audit)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
    uow_factory: UowFactory = Depends(get_uow_factory),  # noqa: B008
) -> User:
    """Resolve the acting user; roles and permissions are read from storage, not the token."""
    if credentials is None:
        raise _unauthorized("Missing bearer token")

    try:
        payload = decode_access_token(credentials.credentials)
    except TokenError as exc:
        raise _unauthorized(str(exc)) from exc

    async with uow_factory() as uow:
        user = await uow.users.get_actor(payload["sub"])

    if user is None:
        raise _unauthorized("Unknown user")
    if not user.is_active:
        raise _forbidden("Account is inactive")
    return user


def require_capability(capability: str) -> Callable[..., object]:
    """Dependency factory enforcing that the authenticated user holds ``capability``."""
    required = Permission.parse(capability)

    async def dependency(
        request: Request,
        user: User = Depends(get_current_user),  # noqa: B008
        audit: AuditRecorder = Depends(get_audit_recorder),  # noqa: B008
    ) -> User:
        if not gate.authorize(user, required):
            await logger.awarning(
                "capability_denied",
                actor_id=user.user_id,
                capability=str(required),
                path=request.url.path,
            )
            await audit.record(
                actor_id=user.user_id,
                action=AuditAction.ACCESS_DENIED,
                details=f"{request.method} {request.url.path}: requires {required}",
                context=get_audit_context(request),
            )
            raise _forbidden(f"Missing permission {required}")
        return user

    return dependency


def issue_smoke_token(user_id: str, *, email: str | None = None) -> str:
    """Generate a signed token for manual smoke testing."""
    return create_access_token(user_id, email=email)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
