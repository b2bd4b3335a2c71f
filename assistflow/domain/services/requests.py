"""Draft creation, editing, comments and read access for assistance requests."""

from __future__ import annotations

import enum
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, TypeVar

import structlog
from assistflow.domain.errors import (
    IllegalTransitionError,
    InvalidPayloadError,
    ReferenceGenerationError,
    StaleStateError,
    UnauthorizedError,
)
from assistflow.domain.models import (
    AssistanceRequest,
    AuditAction,
    AuditContext,
    Category,
    Comment,
    Page,
    Priority,
    RequestFilters,
    RequestStatus,
    User,
    utcnow,
)
from assistflow.domain.reference_data import (
    ASSISTANCE_CREATE,
    ASSISTANCE_MANAGE,
    ASSISTANCE_READ,
)
from assistflow.domain.services.audit import AuditRecorder
from assistflow.domain.services.authorization import AuthorizationGate
from assistflow.domain.services.references import ReferenceGenerator
from assistflow.infrastructure.repositories.unit_of_work import UnitOfWork
from sqlalchemy.exc import IntegrityError

logger = structlog.get_logger()

ENTITY_TYPE = "assistance_request"
EDITABLE_FIELDS = ("title", "description", "category", "priority")
MAX_PAGE_SIZE = 100

E = TypeVar("E", bound=enum.Enum)


def _choice(enum_cls: type[E], value: Any, action: str, field_name: str) -> E:
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise InvalidPayloadError(action, field_name, "is not a valid value") from exc


def _required_text(value: Any, action: str, field_name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise InvalidPayloadError(action, field_name)
    return text


class RequestService:
    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        audit: AuditRecorder,
        *,
        references: ReferenceGenerator | None = None,
        gate: AuthorizationGate | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.uow_factory = uow_factory
        self.audit = audit
        self.references = references or ReferenceGenerator(clock=clock)
        self.gate = gate or AuthorizationGate()
        self.clock = clock

    # ── Visibility ───────────────────────────────────────────────────────

    def can_view(self, request: AssistanceRequest, actor: User) -> bool:
        return actor.user_id in request.party_ids() or self.gate.authorize(actor, ASSISTANCE_READ)

    def visible_comments(self, request: AssistanceRequest, actor: User) -> list[Comment]:
        if self.gate.authorize(actor, ASSISTANCE_MANAGE):
            return list(request.comments)
        return [
            comment
            for comment in request.comments
            if not comment.is_private or comment.author_id == actor.user_id
        ]

    async def _deny(
        self,
        actor: User,
        action: str,
        requirement: str,
        request_id: str | None,
        context: AuditContext | None,
    ) -> UnauthorizedError:
        await logger.awarning(
            "request_access_denied",
            actor_id=actor.user_id,
            action=action,
            request_id=request_id,
        )
        await self.audit.record(
            actor_id=actor.user_id,
            action=AuditAction.ACCESS_DENIED,
            entity_type=ENTITY_TYPE,
            entity_id=request_id,
            details=f"{action}: requires {requirement}",
            context=context,
        )
        return UnauthorizedError(actor.user_id, action, requirement)

    # ── Commands ─────────────────────────────────────────────────────────

    async def create_draft(
        self,
        actor: User,
        *,
        title: str,
        description: str,
        category: Category | str = Category.TECHNIQUE,
        priority: Priority | str = Priority.NORMALE,
        application_id: int | None = None,
        context: AuditContext | None = None,
    ) -> AssistanceRequest:
        if not self.gate.authorize(actor, ASSISTANCE_CREATE):
            raise await self._deny(actor, "create", str(ASSISTANCE_CREATE), None, context)

        title = _required_text(title, "create", "title")
        description = _required_text(description, "create", "description")
        category = _choice(Category, category, "create", "category")
        priority = _choice(Priority, priority, "create", "priority")

        # A concurrent draft may claim the same reference between generation
        # and insert; the unique constraint decides and the loser picks again.
        rejected: set[str] = set()
        attempts = self.references.max_attempts + 1
        for _ in range(attempts):
            reference = ""
            try:
                async with self.uow_factory() as uow:
                    reference = await self.references.generate(
                        uow.requests, application_id, taken=rejected
                    )
                    now = self.clock()
                    request = AssistanceRequest(
                        id=str(uuid.uuid4()),
                        reference=reference,
                        requester_id=actor.user_id,
                        title=title,
                        description=description,
                        category=category,
                        priority=priority,
                        application_id=application_id,
                        created_at=now,
                        updated_at=now,
                    )
                    saved = await uow.requests.add_request(request)
            except IntegrityError:
                await logger.awarning("reference_collision", reference=reference)
                rejected.add(reference)
                continue
            break
        else:
            raise ReferenceGenerationError(
                f"Could not store a unique reference after {attempts} collisions"
            )

        await self.audit.record(
            actor_id=actor.user_id,
            action=AuditAction.CREATE_REQUEST,
            entity_type=ENTITY_TYPE,
            entity_id=saved.id,
            details=saved.reference,
            context=context,
        )
        await logger.ainfo("request_created", request_id=saved.id, reference=saved.reference)
        return saved

    async def update_draft(
        self,
        actor: User,
        request_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: int | None = None,
        context: AuditContext | None = None,
    ) -> AssistanceRequest:
        """Edit a draft's content. Only its requester may, and only in ``brouillon``."""
        async with self.uow_factory() as uow:
            request = await uow.requests.load_request(request_id)
            if request.requester_id != actor.user_id:
                raise await self._deny(actor, "update", "requester", request_id, context)
            if request.status != RequestStatus.BROUILLON:
                raise IllegalTransitionError("update", request.status.value)
            if expected_version is not None and expected_version != request.version:
                raise StaleStateError(request_id, expected_version)

            changed: list[str] = []
            for field_name in EDITABLE_FIELDS:
                if field_name not in changes or changes[field_name] is None:
                    continue
                value = changes[field_name]
                if field_name == "category":
                    value = _choice(Category, value, "update", field_name)
                elif field_name == "priority":
                    value = _choice(Priority, value, "update", field_name)
                else:
                    value = _required_text(value, "update", field_name)
                if getattr(request, field_name) != value:
                    setattr(request, field_name, value)
                    changed.append(field_name)

            if not changed:
                return request

            request.updated_at = self.clock()
            saved = await uow.requests.save_request(request)

        await self.audit.record(
            actor_id=actor.user_id,
            action=AuditAction.UPDATE_REQUEST,
            entity_type=ENTITY_TYPE,
            entity_id=saved.id,
            details="updated: " + ", ".join(changed),
            context=context,
        )
        return saved

    async def add_comment(
        self,
        actor: User,
        request_id: str,
        content: str,
        *,
        private: bool = False,
        context: AuditContext | None = None,
    ) -> Comment:
        content = _required_text(content, "comment", "content")
        async with self.uow_factory() as uow:
            request = await uow.requests.load_request(request_id)
            if not self.can_view(request, actor):
                raise await self._deny(actor, "comment", str(ASSISTANCE_READ), request_id, context)
            comment = await uow.requests.append_comment(
                request_id,
                Comment(
                    author_id=actor.user_id,
                    content=content,
                    is_private=private,
                    created_at=self.clock(),
                ),
            )
        await logger.ainfo(
            "request_commented", request_id=request_id, comment_id=comment.id, private=private
        )
        return comment

    # ── Queries ──────────────────────────────────────────────────────────

    async def get_request(
        self, actor: User, request_id: str, *, context: AuditContext | None = None
    ) -> AssistanceRequest:
        async with self.uow_factory() as uow:
            request = await uow.requests.load_request(request_id)
        if not self.can_view(request, actor):
            raise await self._deny(actor, "read", str(ASSISTANCE_READ), request_id, context)
        request.comments = self.visible_comments(request, actor)
        return request

    async def list_requests(
        self, actor: User, filters: RequestFilters, *, scope: str = "mine"
    ) -> Page:
        """``mine`` lists the actor's own requests; ``all`` needs ``assistance.read``."""
        if scope not in ("mine", "all"):
            raise InvalidPayloadError("list", "scope", "must be 'mine' or 'all'")
        if scope == "mine":
            filters.requester_id = actor.user_id
        elif not self.gate.authorize(actor, ASSISTANCE_READ):
            raise await self._deny(actor, "list", str(ASSISTANCE_READ), None, None)

        filters.page = max(filters.page, 1)
        filters.limit = min(max(filters.limit, 1), MAX_PAGE_SIZE)
        async with self.uow_factory() as uow:
            return await uow.requests.list_requests(filters)
