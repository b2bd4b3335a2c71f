"""Authentication routes - login, token refresh, logout, profile."""

from __future__ import annotations

import structlog
from assistflow.api.deps import get_audit_context, get_auth_service, get_current_user
from assistflow.api.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    RefreshTokenRequest,
    TokenResponse,
    UserResponse,
)
from assistflow.domain import AuditContext, User
from assistflow.domain.services.auth_service import (
    AuthService,
    InvalidCredentialsError,
    UserInactiveError,
    UserNotFoundError,
)
from fastapi import APIRouter, Depends, HTTPException, status

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="User login",
    description="Authenticate user with email and password, returns JWT tokens.",
)
async def login(
    payload: LoginRequest,
    service: AuthService = Depends(get_auth_service),  # noqa: B008
    context: AuditContext = Depends(get_audit_context),  # noqa: B008
) -> LoginResponse:
    """Authenticate user and return tokens."""
    try:
        result = await service.login(
            email=payload.email,
            password=payload.password,
            context=context,
        )
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except UserInactiveError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
        ) from exc

    return LoginResponse(
        message="Login successful",
        user=UserResponse(**result["user"]),
        tokens=TokenResponse(**result["tokens"]),
    )


@router.post("/refresh", response_model=LoginResponse, summary="Refresh tokens")
async def refresh(
    payload: RefreshTokenRequest,
    service: AuthService = Depends(get_auth_service),  # noqa: B008
) -> LoginResponse:
    try:
        result = await service.refresh(payload.refresh_token)
    except (InvalidCredentialsError, UserNotFoundError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except UserInactiveError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
        ) from exc

    return LoginResponse(
        message="Token refreshed",
        user=UserResponse(**result["user"]),
        tokens=TokenResponse(**result["tokens"]),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="User logout")
async def logout(
    user: User = Depends(get_current_user),  # noqa: B008
    service: AuthService = Depends(get_auth_service),  # noqa: B008
    context: AuditContext = Depends(get_audit_context),  # noqa: B008
) -> None:
    await service.logout(user, context)


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get current user",
    description="Get the currently authenticated user's profile and effective permissions.",
)
async def get_me(
    user: User = Depends(get_current_user),  # noqa: B008
    service: AuthService = Depends(get_auth_service),  # noqa: B008
) -> MeResponse:
    return MeResponse(user=UserResponse(**service.user_to_dict(user)))
