"""
Workflow engine: validates and applies one transition to an in-memory request.

    engine = WorkflowEngine()
    record = engine.apply(request, "approve_dec", actor, {"comment": "ok"})

Checks run in a fixed order (legality, guard, payload) and all of them
complete before the request is touched, so a refused attempt leaves the
aggregate exactly as it was.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import structlog
from assistflow.domain.errors import (
    IllegalTransitionError,
    InvalidPayloadError,
    UnauthorizedError,
)
from assistflow.domain.models import AssistanceRequest, HistoryRecord, User, utcnow
from assistflow.domain.services.authorization import AuthorizationGate
from assistflow.domain.services.transitions import (
    TransitionPayload,
    TransitionRule,
    lookup,
    outgoing,
)

logger = structlog.get_logger()

PayloadLike = TransitionPayload | Mapping[str, Any] | None


def _as_payload(payload: PayloadLike) -> TransitionPayload:
    if isinstance(payload, TransitionPayload):
        return payload
    return TransitionPayload.from_mapping(payload)


class WorkflowEngine:
    """Applies transitions from the lifecycle table to a request aggregate."""

    def __init__(
        self,
        gate: AuthorizationGate | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.gate = gate or AuthorizationGate()
        self.clock = clock

    def rule_for(self, request: AssistanceRequest, transition: str) -> TransitionRule:
        rule = lookup(request.status, transition)
        if rule is None:
            raise IllegalTransitionError(transition, request.status.value)
        return rule

    def check(
        self,
        request: AssistanceRequest,
        transition: str,
        actor: User,
        payload: PayloadLike = None,
    ) -> TransitionRule:
        """Run every validation without mutating; return the matching rule."""
        rule = self.rule_for(request, transition)

        if not rule.guard.allows(request, actor, self.gate):
            raise UnauthorizedError(actor.user_id, transition, rule.guard.describe())

        data = _as_payload(payload)
        for field_name in rule.required_fields:
            if not getattr(data, field_name):
                raise InvalidPayloadError(transition, field_name)

        return rule

    def apply(
        self,
        request: AssistanceRequest,
        transition: str,
        actor: User,
        payload: PayloadLike = None,
    ) -> HistoryRecord:
        """Validate then apply ``transition``; return the appended history record."""
        data = _as_payload(payload)
        rule = self.check(request, transition, actor, data)

        now = self.clock()
        previous = request.status
        request.status = rule.target
        rule.effect(request, actor, data, now)
        request.updated_at = now

        record = HistoryRecord(
            action=rule.label,
            actor_id=actor.user_id,
            timestamp=now,
            details=self._details(rule, data),
            stage=rule.stage.value if rule.stage else None,
        )
        request.append_history(record)

        logger.info(
            "transition_applied",
            request_id=request.id,
            transition=transition,
            from_status=previous.value,
            to_status=rule.target.value,
            actor_id=actor.user_id,
        )
        return record

    def available_transitions(self, request: AssistanceRequest, actor: User) -> list[str]:
        """Transitions leaving the current status whose guard the actor passes."""
        return [
            rule.name
            for rule in outgoing(request.status)
            if rule.guard.allows(request, actor, self.gate)
        ]

    @staticmethod
    def _details(rule: TransitionRule, payload: TransitionPayload) -> str | None:
        if rule.name == "assign":
            note = f"technician={payload.technician_id}"
            return f"{note}; {payload.comment}" if payload.comment else note
        return payload.details
