"""
Assistance request persistence.

``save_request`` is the only way a loaded aggregate goes back to storage. It
updates the row only if the stored version still equals the loaded one and
bumps it in the same statement, so of two writers racing from the same state
exactly one succeeds and the other gets ``StaleStateError``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog
from assistflow.domain.errors import RequestNotFoundError, StaleStateError
from assistflow.domain.models import (
    AssistanceRequest,
    Comment,
    HistoryRecord,
    Page,
    RequestFilters,
    RequestStatus,
    WorkflowStep,
)
from assistflow.infrastructure.db.models import (
    ApplicationModel,
    AssistanceRequestModel,
    RequestCommentModel,
    RequestHistoryModel,
    WorkflowStepModel,
)
from assistflow.infrastructure.repositories.users import aware
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = structlog.get_logger()

SCALAR_FIELDS = (
    "reference",
    "title",
    "description",
    "category",
    "priority",
    "application_id",
    "status",
    "requester_id",
    "verifier_id",
    "dec_validator_id",
    "bao_validator_id",
    "technician_id",
    "assigned_by_id",
    "created_at",
    "updated_at",
    "submitted_at",
    "verified_at",
    "dec_validated_at",
    "bao_validated_at",
    "assigned_at",
    "resolved_at",
)

TIMESTAMP_FIELDS = tuple(name for name in SCALAR_FIELDS if name.endswith("_at"))


def _step_to_domain(model: WorkflowStepModel) -> WorkflowStep:
    return WorkflowStep(
        stage=model.stage,
        status=model.status,
        assignee_id=model.assignee_id,
        started_at=aware(model.started_at),
        ended_at=aware(model.ended_at),
        comment=model.comment,
        id=model.id,
    )


def _history_to_domain(model: RequestHistoryModel) -> HistoryRecord:
    return HistoryRecord(
        action=model.action,
        actor_id=model.actor_id,
        timestamp=aware(model.created_at),
        details=model.details,
        stage=model.stage,
        id=model.id,
    )


def _comment_to_domain(model: RequestCommentModel) -> Comment:
    return Comment(
        author_id=model.author_id,
        content=model.content,
        is_private=model.is_private,
        created_at=aware(model.created_at),
        id=model.id,
    )


def request_to_domain(model: AssistanceRequestModel, *, with_ledgers: bool = True) -> AssistanceRequest:
    values: dict[str, Any] = {name: getattr(model, name) for name in SCALAR_FIELDS}
    for name in TIMESTAMP_FIELDS:
        values[name] = aware(values[name])
    request = AssistanceRequest(id=model.id, version=model.version, **values)
    if with_ledgers:
        request.steps = [_step_to_domain(step) for step in model.steps]
        request.history = [_history_to_domain(record) for record in model.history]
        request.comments = [_comment_to_domain(comment) for comment in model.comments]
    return request


def _step_values(step: WorkflowStep) -> dict[str, Any]:
    return {
        "status": step.status,
        "assignee_id": step.assignee_id,
        "started_at": step.started_at,
        "ended_at": step.ended_at,
        "comment": step.comment,
    }


class SqlRequestRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def load_request(self, request_id: str) -> AssistanceRequest:
        stmt = (
            select(AssistanceRequestModel)
            .where(AssistanceRequestModel.id == request_id)
            .options(
                selectinload(AssistanceRequestModel.steps),
                selectinload(AssistanceRequestModel.history),
                selectinload(AssistanceRequestModel.comments),
            )
            .execution_options(populate_existing=True)
        )
        model = await self.session.scalar(stmt)
        if model is None:
            raise RequestNotFoundError(request_id)
        return request_to_domain(model)

    async def add_request(self, request: AssistanceRequest) -> AssistanceRequest:
        values = {name: getattr(request, name) for name in SCALAR_FIELDS}
        model = AssistanceRequestModel(id=request.id, version=request.version, **values)
        self.session.add(model)
        await self.session.flush()
        self._add_ledgers(request)
        await self.session.flush()
        return await self.load_request(request.id)

    async def save_request(self, request: AssistanceRequest) -> AssistanceRequest:
        """Persist ``request`` if nobody saved it since it was loaded.

        Raises ``StaleStateError`` when the stored version moved on.
        """
        values = {name: getattr(request, name) for name in SCALAR_FIELDS}
        stmt = (
            update(AssistanceRequestModel)
            .where(
                AssistanceRequestModel.id == request.id,
                AssistanceRequestModel.version == request.version,
            )
            .values(**values, version=request.version + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                "request_save_conflict",
                request_id=request.id,
                expected_version=request.version,
            )
            raise StaleStateError(request.id, request.version)

        for step in request.steps:
            if step.id is not None:
                await self.session.execute(
                    update(WorkflowStepModel)
                    .where(WorkflowStepModel.id == step.id)
                    .values(**_step_values(step))
                    .execution_options(synchronize_session=False)
                )
        self._add_ledgers(request)
        await self.session.flush()
        return await self.load_request(request.id)

    def _add_ledgers(self, request: AssistanceRequest) -> None:
        # Rows without an id are new; stored history rows are never rewritten
        for step in request.steps:
            if step.id is None:
                self.session.add(
                    WorkflowStepModel(
                        request_id=request.id,
                        stage=step.stage,
                        position=step.order,
                        **_step_values(step),
                    )
                )
        for position, record in enumerate(request.history):
            if record.id is None:
                self.session.add(
                    RequestHistoryModel(
                        request_id=request.id,
                        position=position,
                        action=record.action,
                        actor_id=record.actor_id,
                        created_at=record.timestamp,
                        details=record.details,
                        stage=record.stage,
                    )
                )

    async def append_comment(self, request_id: str, comment: Comment) -> Comment:
        model = RequestCommentModel(
            request_id=request_id,
            author_id=comment.author_id,
            content=comment.content,
            is_private=comment.is_private,
            created_at=comment.created_at,
        )
        self.session.add(model)
        await self.session.flush()
        return _comment_to_domain(model)

    async def list_requests(self, filters: RequestFilters) -> Page:
        conditions = []
        if filters.requester_id:
            conditions.append(AssistanceRequestModel.requester_id == filters.requester_id)
        if filters.status:
            conditions.append(AssistanceRequestModel.status == filters.status)
        if filters.priority:
            conditions.append(AssistanceRequestModel.priority == filters.priority)
        if filters.category:
            conditions.append(AssistanceRequestModel.category == filters.category)
        if filters.application_id is not None:
            conditions.append(AssistanceRequestModel.application_id == filters.application_id)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            conditions.append(
                or_(
                    AssistanceRequestModel.title.ilike(pattern),
                    AssistanceRequestModel.reference.ilike(pattern),
                    AssistanceRequestModel.description.ilike(pattern),
                )
            )

        total = await self.session.scalar(
            select(func.count()).select_from(AssistanceRequestModel).where(*conditions)
        )
        stmt = (
            select(AssistanceRequestModel)
            .where(*conditions)
            .order_by(AssistanceRequestModel.created_at.desc(), AssistanceRequestModel.id)
            .offset(filters.offset)
            .limit(filters.limit)
        )
        rows = await self.session.scalars(stmt)
        items = [request_to_domain(model, with_ledgers=False) for model in rows]
        return Page(items=items, total=total or 0, page=filters.page, limit=filters.limit)

    # ── Reference numbering ──────────────────────────────────────────────

    async def application_name(self, application_id: int | None) -> str | None:
        if application_id is None:
            return None
        return await self.session.scalar(
            select(ApplicationModel.name).where(ApplicationModel.id == application_id)
        )

    async def add_application(self, name: str) -> int:
        model = ApplicationModel(name=name)
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def count_for_application(self, application_id: int | None, year: int) -> int:
        start = datetime(year, 1, 1, tzinfo=UTC)
        end = datetime(year + 1, 1, 1, tzinfo=UTC)
        if application_id is None:
            scope = AssistanceRequestModel.application_id.is_(None)
        else:
            scope = AssistanceRequestModel.application_id == application_id
        stmt = (
            select(func.count())
            .select_from(AssistanceRequestModel)
            .where(
                scope,
                AssistanceRequestModel.created_at >= start,
                AssistanceRequestModel.created_at < end,
            )
        )
        return await self.session.scalar(stmt) or 0

    async def reference_exists(self, reference: str) -> bool:
        found = await self.session.scalar(
            select(AssistanceRequestModel.id).where(AssistanceRequestModel.reference == reference)
        )
        return found is not None

    # ── Dashboard aggregates ─────────────────────────────────────────────

    async def count_requests(
        self,
        *,
        requester_id: str | None = None,
        statuses: tuple[RequestStatus, ...] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(AssistanceRequestModel)
        if requester_id:
            stmt = stmt.where(AssistanceRequestModel.requester_id == requester_id)
        if statuses:
            stmt = stmt.where(AssistanceRequestModel.status.in_(statuses))
        if since is not None:
            stmt = stmt.where(AssistanceRequestModel.created_at >= since)
        if until is not None:
            stmt = stmt.where(AssistanceRequestModel.created_at < until)
        return await self.session.scalar(stmt) or 0

    async def count_grouped(self, column: str, *, requester_id: str | None = None) -> dict[str, int]:
        """Row counts per distinct value of ``column`` (``status`` or ``priority``)."""
        attribute = getattr(AssistanceRequestModel, column)
        stmt = select(attribute, func.count()).group_by(attribute)
        if requester_id:
            stmt = stmt.where(AssistanceRequestModel.requester_id == requester_id)
        result = await self.session.execute(stmt)
        return {value.value: count for value, count in result.all()}

    async def recent_requests(
        self, *, requester_id: str | None = None, limit: int = 5
    ) -> list[AssistanceRequest]:
        stmt = select(AssistanceRequestModel).order_by(
            AssistanceRequestModel.created_at.desc(), AssistanceRequestModel.id
        )
        if requester_id:
            stmt = stmt.where(AssistanceRequestModel.requester_id == requester_id)
        rows = await self.session.scalars(stmt.limit(limit))
        return [request_to_domain(model, with_ledgers=False) for model in rows]
