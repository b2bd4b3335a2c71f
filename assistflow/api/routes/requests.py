from __future__ import annotations

import structlog
from assistflow.api.deps import (
    get_audit_context,
    get_current_user,
    get_request_service,
    get_workflow_service,
)
from assistflow.api.errors import http_error
from assistflow.api.schemas.requests import (
    AvailableTransitions,
    CommentCreate,
    CommentOut,
    RequestCreate,
    RequestDetail,
    RequestPage,
    RequestSummary,
    RequestUpdate,
    TransitionRequest,
)
from assistflow.domain import (
    AuditContext,
    Category,
    Priority,
    RequestFilters,
    RequestStatus,
    User,
)
from assistflow.domain.errors import WorkflowError
from assistflow.domain.services.requests import RequestService
from assistflow.domain.services.workflow import WorkflowService
from fastapi import APIRouter, Depends, Query, status

router = APIRouter(prefix="/requests", tags=["Assistance requests"])
logger = structlog.get_logger()


@router.post("", response_model=RequestDetail, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: RequestCreate,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RequestService = Depends(get_request_service),  # noqa: B008
    context: AuditContext = Depends(get_audit_context),  # noqa: B008
) -> RequestDetail:
    """Create a draft request owned by the caller."""
    try:
        request = await service.create_draft(
            user,
            title=payload.title,
            description=payload.description,
            category=payload.category,
            priority=payload.priority,
            application_id=payload.application_id,
            context=context,
        )
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return RequestDetail.model_validate(request)


@router.get("", response_model=RequestPage)
async def list_requests(
    scope: str = Query("mine", pattern="^(mine|all)$"),
    status_filter: RequestStatus | None = Query(None, alias="status"),  # noqa: B008
    priority: Priority | None = None,
    category: Category | None = None,
    application_id: int | None = None,
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),  # noqa: B008
    service: RequestService = Depends(get_request_service),  # noqa: B008
) -> RequestPage:
    filters = RequestFilters(
        status=status_filter,
        priority=priority,
        category=category,
        application_id=application_id,
        search=search,
        page=page,
        limit=limit,
    )
    try:
        result = await service.list_requests(user, filters, scope=scope)
    except WorkflowError as exc:
        raise http_error(exc) from exc

    return RequestPage(
        items=[RequestSummary.model_validate(item) for item in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )


@router.get("/{request_id}", response_model=RequestDetail)
async def get_request(
    request_id: str,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RequestService = Depends(get_request_service),  # noqa: B008
    context: AuditContext = Depends(get_audit_context),  # noqa: B008
) -> RequestDetail:
    try:
        request = await service.get_request(user, request_id, context=context)
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return RequestDetail.model_validate(request)


@router.patch("/{request_id}", response_model=RequestDetail)
async def update_request(
    request_id: str,
    payload: RequestUpdate,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RequestService = Depends(get_request_service),  # noqa: B008
    context: AuditContext = Depends(get_audit_context),  # noqa: B008
) -> RequestDetail:
    """Edit a draft. Only its requester may, and only before submission."""
    changes = payload.model_dump(exclude_unset=True, exclude={"version"})
    try:
        request = await service.update_draft(
            user,
            request_id,
            changes,
            expected_version=payload.version,
            context=context,
        )
    except WorkflowError as exc:
        raise http_error(exc) from exc
    request.comments = service.visible_comments(request, user)
    return RequestDetail.model_validate(request)


@router.post(
    "/{request_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    request_id: str,
    payload: CommentCreate,
    user: User = Depends(get_current_user),  # noqa: B008
    service: RequestService = Depends(get_request_service),  # noqa: B008
    context: AuditContext = Depends(get_audit_context),  # noqa: B008
) -> CommentOut:
    try:
        comment = await service.add_comment(
            user,
            request_id,
            payload.content,
            private=payload.is_private,
            context=context,
        )
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return CommentOut.model_validate(comment)


@router.get("/{request_id}/transitions", response_model=AvailableTransitions)
async def available_transitions(
    request_id: str,
    user: User = Depends(get_current_user),  # noqa: B008
    requests: RequestService = Depends(get_request_service),  # noqa: B008
    workflow: WorkflowService = Depends(get_workflow_service),  # noqa: B008
) -> AvailableTransitions:
    """Transitions the caller may fire from the request's current status."""
    try:
        request = await requests.get_request(user, request_id)
    except WorkflowError as exc:
        raise http_error(exc) from exc
    return AvailableTransitions(
        request_id=request.id,
        status=request.status,
        transitions=workflow.engine.available_transitions(request, user),
    )


@router.post("/{request_id}/transitions/{transition}", response_model=RequestDetail)
async def apply_transition(
    request_id: str,
    transition: str,
    payload: TransitionRequest | None = None,
    user: User = Depends(get_current_user),  # noqa: B008
    requests: RequestService = Depends(get_request_service),  # noqa: B008
    workflow: WorkflowService = Depends(get_workflow_service),  # noqa: B008
    context: AuditContext = Depends(get_audit_context),  # noqa: B008
) -> RequestDetail:
    data = payload.model_dump() if payload else None
    try:
        request = await workflow.apply_transition(
            request_id, transition, user, data, context=context
        )
    except WorkflowError as exc:
        raise http_error(exc) from exc
    request.comments = requests.visible_comments(request, user)
    return RequestDetail.model_validate(request)
