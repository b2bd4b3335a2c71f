"""
Transition use case.

Loads the request, lets the engine validate and apply the transition, saves
with the optimistic version check and, once committed, writes the audit entry
and sends notifications. A refused attempt changes nothing in storage; an
unauthorized one is still written to the audit log as ``ACCESS_DENIED``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import structlog
from assistflow.domain.errors import InvalidPayloadError, UnauthorizedError
from assistflow.domain.models import AssistanceRequest, AuditAction, AuditContext, User
from assistflow.domain.services.audit import AuditRecorder
from assistflow.domain.services.engine import WorkflowEngine
from assistflow.domain.services.notifications import NotificationDispatcher
from assistflow.domain.services.transitions import TransitionPayload
from assistflow.infrastructure.repositories.unit_of_work import UnitOfWork

logger = structlog.get_logger()

ENTITY_TYPE = "assistance_request"


class WorkflowService:
    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        audit: AuditRecorder,
        *,
        engine: WorkflowEngine | None = None,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self.uow_factory = uow_factory
        self.audit = audit
        self.engine = engine or WorkflowEngine()
        self.notifier = notifier or NotificationDispatcher()

    async def apply_transition(
        self,
        request_id: str,
        transition: str,
        actor: User,
        payload: TransitionPayload | Mapping[str, Any] | None = None,
        context: AuditContext | None = None,
    ) -> AssistanceRequest:
        """Fire ``transition`` on the stored request and return the saved state.

        Raises ``RequestNotFoundError``, ``IllegalTransitionError``,
        ``UnauthorizedError``, ``InvalidPayloadError`` or ``StaleStateError``;
        in every case storage is left untouched.
        """
        data = payload if isinstance(payload, TransitionPayload) else TransitionPayload.from_mapping(payload)

        try:
            async with self.uow_factory() as uow:
                request = await uow.requests.load_request(request_id)
                rule = self.engine.check(request, transition, actor, data)

                if rule.name == "assign":
                    technician = await uow.users.get_actor(data.technician_id)
                    if technician is None or not technician.is_active:
                        raise InvalidPayloadError(
                            transition, "technician_id", "does not name an active user"
                        )

                record = self.engine.apply(request, transition, actor, data)
                saved = await uow.requests.save_request(request)
        except UnauthorizedError as exc:
            await logger.awarning(
                "transition_denied",
                request_id=request_id,
                transition=transition,
                actor_id=actor.user_id,
                requirement=exc.requirement,
            )
            await self.audit.record(
                actor_id=actor.user_id,
                action=AuditAction.ACCESS_DENIED,
                entity_type=ENTITY_TYPE,
                entity_id=request_id,
                details=f"{transition}: requires {exc.requirement}",
                context=context,
            )
            raise

        details = f"{rule.source.value} -> {rule.target.value}"
        if record.details:
            details = f"{details}: {record.details}"
        await self.audit.record(
            actor_id=actor.user_id,
            action=rule.audit_action,
            entity_type=ENTITY_TYPE,
            entity_id=saved.id,
            details=details,
            context=context,
        )
        await logger.ainfo(
            "transition_committed",
            request_id=saved.id,
            reference=saved.reference,
            transition=transition,
            status=saved.status.value,
            version=saved.version,
        )
        await self.notifier.dispatch(rule, saved, actor)
        return saved

    async def available_transitions(self, request_id: str, actor: User) -> list[str]:
        async with self.uow_factory() as uow:
            request = await uow.requests.load_request(request_id)
        return self.engine.available_transitions(request, actor)
