from __future__ import annotations

from assistflow.domain.errors import (
    IllegalTransitionError,
    InvalidPayloadError,
    ReferenceGenerationError,
    RequestNotFoundError,
    StaleStateError,
    UnauthorizedError,
    WorkflowError,
)
from assistflow.domain.services.rbac import (
    AccountNotFoundError,
    PermissionNotFoundError,
    RoleExistsError,
    RoleNotFoundError,
)
from fastapi import HTTPException, status

STATUS_CODES: dict[type[WorkflowError], int] = {
    IllegalTransitionError: status.HTTP_409_CONFLICT,
    StaleStateError: status.HTTP_409_CONFLICT,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    InvalidPayloadError: 422,
    RequestNotFoundError: status.HTTP_404_NOT_FOUND,
    ReferenceGenerationError: status.HTTP_503_SERVICE_UNAVAILABLE,
    RoleExistsError: status.HTTP_409_CONFLICT,
    RoleNotFoundError: status.HTTP_404_NOT_FOUND,
    PermissionNotFoundError: status.HTTP_404_NOT_FOUND,
    AccountNotFoundError: status.HTTP_404_NOT_FOUND,
}


def http_error(exc: WorkflowError) -> HTTPException:
    """Translate a domain failure into the HTTP error the API reports."""
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
