"""
Request lifecycle state graph.

Every legal edge is one ``TransitionRule`` row carrying its guard, payload
requirements, history label and side effect, keyed by ``(source, name)``.
Anything missing from ``TRANSITIONS`` is illegal.

    brouillon -submit-> soumise -start_verification-> verification
    verification -approve_verification-> validation_dec -approve_dec->
    validation_bao -approve_bao-> approuvee -assign-> assignee
    -start_processing-> en_cours -resolve-> resolue -close-> fermee

    verification -request_modification-> brouillon
    verification / validation_dec / validation_bao -reject_*-> rejetee
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from assistflow.domain.models import (
    AssistanceRequest,
    AuditAction,
    Permission,
    RequestStatus,
    Stage,
    StepStatus,
    User,
)
from assistflow.domain.reference_data import (
    ASSISTANCE_ASSIGN,
    ASSISTANCE_MANAGE,
    ASSISTANCE_VALIDATE_BAO,
    ASSISTANCE_VALIDATE_DEC,
    ASSISTANCE_VERIFY,
)
from assistflow.domain.services.authorization import AuthorizationGate


@dataclass(frozen=True, slots=True)
class TransitionPayload:
    """Caller-supplied data for a transition."""

    comment: str | None = None
    reason: str | None = None
    technician_id: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> TransitionPayload:
        data = data or {}

        def _clean(key: str) -> str | None:
            value = data.get(key)
            if value is None:
                return None
            value = str(value).strip()
            return value or None

        return cls(
            comment=_clean("comment"),
            reason=_clean("reason"),
            technician_id=_clean("technician_id"),
        )

    @property
    def details(self) -> str | None:
        return self.reason or self.comment


@dataclass(frozen=True, slots=True)
class Guard:
    """Who may fire a transition.

    Passes when the actor is bound to the request through ``party`` (an
    attribute name such as ``requester_id``) or holds ``capability``.
    """

    capability: Permission | None = None
    party: str | None = None

    def allows(self, request: AssistanceRequest, actor: User, gate: AuthorizationGate) -> bool:
        if self.party is not None and getattr(request, self.party) == actor.user_id:
            return True
        if self.capability is not None and gate.authorize(actor, self.capability):
            return True
        return False

    def describe(self) -> str:
        parts = []
        if self.party is not None:
            parts.append(self.party.removesuffix("_id"))
        if self.capability is not None:
            parts.append(str(self.capability))
        return " or ".join(parts)


Effect = Callable[[AssistanceRequest, User, TransitionPayload, datetime], None]


@dataclass(frozen=True, slots=True)
class TransitionRule:
    name: str
    source: RequestStatus
    target: RequestStatus
    guard: Guard
    label: str
    effect: Effect
    stage: Stage | None = None
    required_fields: tuple[str, ...] = ()
    audit_action: AuditAction = AuditAction.UPDATE_REQUEST
    notify: tuple[str, ...] = ("requester_id",)


# ── Side effects ──────────────────────────────────────────────────────────────


def _stamp_once(request: AssistanceRequest, attribute: str, now: datetime) -> None:
    if getattr(request, attribute) is None:
        setattr(request, attribute, now)


def _open_stage(request: AssistanceRequest, stage: Stage, now: datetime) -> None:
    step = request.ensure_step(stage)
    if step.status == StepStatus.EN_ATTENTE:
        step.status = StepStatus.EN_COURS
    if step.started_at is None:
        step.started_at = now


def _close_stage(
    request: AssistanceRequest,
    stage: Stage,
    outcome: StepStatus,
    actor: User,
    comment: str | None,
    now: datetime,
) -> None:
    step = request.ensure_step(stage)
    step.status = outcome
    step.assignee_id = step.assignee_id or actor.user_id
    if step.started_at is None:
        step.started_at = now
    step.ended_at = now
    if comment:
        step.comment = comment


def _submit(request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime) -> None:
    _stamp_once(request, "submitted_at", now)


def _start_verification(
    request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime
) -> None:
    step = request.ensure_step(Stage.VERIFICATION)
    # A request sent back for modification re-enters a previously closed step
    step.status = StepStatus.EN_COURS
    step.assignee_id = actor.user_id
    step.started_at = now
    step.ended_at = None
    step.comment = payload.comment
    request.verifier_id = actor.user_id


def _approve_verification(
    request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime
) -> None:
    _close_stage(request, Stage.VERIFICATION, StepStatus.TERMINE, actor, payload.comment, now)
    _stamp_once(request, "verified_at", now)
    _open_stage(request, Stage.VALIDATION_DEC, now)


def _reject_verification(
    request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime
) -> None:
    _close_stage(request, Stage.VERIFICATION, StepStatus.REJETE, actor, payload.reason, now)


def _request_modification(
    request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime
) -> None:
    _close_stage(request, Stage.VERIFICATION, StepStatus.REJETE, actor, payload.reason, now)
    request.verifier_id = None


def _approve_dec(request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime) -> None:
    _close_stage(request, Stage.VALIDATION_DEC, StepStatus.TERMINE, actor, payload.comment, now)
    request.dec_validator_id = actor.user_id
    _stamp_once(request, "dec_validated_at", now)
    _open_stage(request, Stage.VALIDATION_BAO, now)


def _reject_dec(request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime) -> None:
    _close_stage(request, Stage.VALIDATION_DEC, StepStatus.REJETE, actor, payload.reason, now)


def _approve_bao(request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime) -> None:
    _close_stage(request, Stage.VALIDATION_BAO, StepStatus.TERMINE, actor, payload.comment, now)
    request.bao_validator_id = actor.user_id
    _stamp_once(request, "bao_validated_at", now)
    _open_stage(request, Stage.ASSIGNATION, now)


def _reject_bao(request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime) -> None:
    _close_stage(request, Stage.VALIDATION_BAO, StepStatus.REJETE, actor, payload.reason, now)


def _assign(request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime) -> None:
    request.technician_id = payload.technician_id
    request.assigned_by_id = actor.user_id
    _stamp_once(request, "assigned_at", now)
    _close_stage(request, Stage.ASSIGNATION, StepStatus.TERMINE, actor, payload.comment, now)
    resolution = request.ensure_step(Stage.RESOLUTION)
    resolution.assignee_id = payload.technician_id


def _start_processing(
    request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime
) -> None:
    _open_stage(request, Stage.RESOLUTION, now)


def _resolve(request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime) -> None:
    step = request.ensure_step(Stage.RESOLUTION)
    step.status = StepStatus.TERMINE
    step.ended_at = now
    if step.started_at is None:
        step.started_at = now
    if payload.comment:
        step.comment = payload.comment
    _stamp_once(request, "resolved_at", now)


def _close(request: AssistanceRequest, actor: User, payload: TransitionPayload, now: datetime) -> None:
    return None


# ── Table ─────────────────────────────────────────────────────────────────────

S = RequestStatus

RULES: tuple[TransitionRule, ...] = (
    TransitionRule(
        name="submit",
        source=S.BROUILLON,
        target=S.SOUMISE,
        guard=Guard(party="requester_id"),
        label="submission",
        effect=_submit,
        notify=(),
    ),
    TransitionRule(
        name="start_verification",
        source=S.SOUMISE,
        target=S.VERIFICATION,
        guard=Guard(capability=ASSISTANCE_VERIFY),
        label="verification_started",
        effect=_start_verification,
        stage=Stage.VERIFICATION,
    ),
    TransitionRule(
        name="approve_verification",
        source=S.VERIFICATION,
        target=S.VALIDATION_DEC,
        guard=Guard(capability=ASSISTANCE_VERIFY),
        label="verification_approved",
        effect=_approve_verification,
        stage=Stage.VERIFICATION,
        audit_action=AuditAction.VALIDATE_REQUEST,
    ),
    TransitionRule(
        name="reject_verification",
        source=S.VERIFICATION,
        target=S.REJETEE,
        guard=Guard(capability=ASSISTANCE_VERIFY),
        label="verification_rejected",
        effect=_reject_verification,
        stage=Stage.VERIFICATION,
        required_fields=("reason",),
        audit_action=AuditAction.REJECT_REQUEST,
    ),
    TransitionRule(
        name="request_modification",
        source=S.VERIFICATION,
        target=S.BROUILLON,
        guard=Guard(capability=ASSISTANCE_VERIFY),
        label="modification_requested",
        effect=_request_modification,
        stage=Stage.VERIFICATION,
        required_fields=("reason",),
    ),
    TransitionRule(
        name="approve_dec",
        source=S.VALIDATION_DEC,
        target=S.VALIDATION_BAO,
        guard=Guard(capability=ASSISTANCE_VALIDATE_DEC),
        label="delegue_approved",
        effect=_approve_dec,
        stage=Stage.VALIDATION_DEC,
        audit_action=AuditAction.VALIDATE_REQUEST,
    ),
    TransitionRule(
        name="reject_dec",
        source=S.VALIDATION_DEC,
        target=S.REJETEE,
        guard=Guard(capability=ASSISTANCE_VALIDATE_DEC),
        label="delegue_rejected",
        effect=_reject_dec,
        stage=Stage.VALIDATION_DEC,
        required_fields=("reason",),
        audit_action=AuditAction.REJECT_REQUEST,
    ),
    TransitionRule(
        name="approve_bao",
        source=S.VALIDATION_BAO,
        target=S.APPROUVEE,
        guard=Guard(capability=ASSISTANCE_VALIDATE_BAO),
        label="bao_approved",
        effect=_approve_bao,
        stage=Stage.VALIDATION_BAO,
        audit_action=AuditAction.VALIDATE_REQUEST,
    ),
    TransitionRule(
        name="reject_bao",
        source=S.VALIDATION_BAO,
        target=S.REJETEE,
        guard=Guard(capability=ASSISTANCE_VALIDATE_BAO),
        label="bao_rejected",
        effect=_reject_bao,
        stage=Stage.VALIDATION_BAO,
        required_fields=("reason",),
        audit_action=AuditAction.REJECT_REQUEST,
    ),
    TransitionRule(
        name="assign",
        source=S.APPROUVEE,
        target=S.ASSIGNEE,
        guard=Guard(capability=ASSISTANCE_ASSIGN),
        label="assigned",
        effect=_assign,
        stage=Stage.ASSIGNATION,
        required_fields=("technician_id",),
        notify=("requester_id", "technician_id"),
    ),
    TransitionRule(
        name="start_processing",
        source=S.ASSIGNEE,
        target=S.EN_COURS,
        guard=Guard(capability=ASSISTANCE_ASSIGN, party="technician_id"),
        label="processing_started",
        effect=_start_processing,
        stage=Stage.RESOLUTION,
    ),
    TransitionRule(
        name="resolve",
        source=S.EN_COURS,
        target=S.RESOLUE,
        guard=Guard(capability=ASSISTANCE_MANAGE, party="technician_id"),
        label="resolved",
        effect=_resolve,
        stage=Stage.RESOLUTION,
    ),
    TransitionRule(
        name="close",
        source=S.RESOLUE,
        target=S.FERMEE,
        guard=Guard(capability=ASSISTANCE_MANAGE, party="requester_id"),
        label="closed",
        effect=_close,
        notify=("requester_id", "technician_id"),
    ),
)

TRANSITIONS: dict[tuple[RequestStatus, str], TransitionRule] = {
    (rule.source, rule.name): rule for rule in RULES
}

TRANSITION_NAMES: tuple[str, ...] = tuple(dict.fromkeys(rule.name for rule in RULES))


def lookup(status: RequestStatus, name: str) -> TransitionRule | None:
    return TRANSITIONS.get((status, name))


def outgoing(status: RequestStatus) -> list[TransitionRule]:
    return [rule for rule in RULES if rule.source == status]
