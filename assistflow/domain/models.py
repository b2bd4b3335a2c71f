from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


class RequestStatus(str, enum.Enum):
    """Lifecycle status of an assistance request."""

    BROUILLON = "brouillon"
    SOUMISE = "soumise"
    VERIFICATION = "verification"
    VALIDATION_DEC = "validation_dec"
    VALIDATION_BAO = "validation_bao"
    APPROUVEE = "approuvee"
    ASSIGNEE = "assignee"
    EN_COURS = "en_cours"
    RESOLUE = "resolue"
    FERMEE = "fermee"
    REJETEE = "rejetee"

    @classmethod
    def terminal_statuses(cls) -> tuple[RequestStatus, ...]:
        return (cls.FERMEE, cls.REJETEE)

    @classmethod
    def pending_statuses(cls) -> tuple[RequestStatus, ...]:
        return (cls.SOUMISE, cls.VERIFICATION, cls.VALIDATION_DEC, cls.VALIDATION_BAO)

    @classmethod
    def in_progress_statuses(cls) -> tuple[RequestStatus, ...]:
        return (cls.APPROUVEE, cls.ASSIGNEE, cls.EN_COURS)

    @classmethod
    def resolved_statuses(cls) -> tuple[RequestStatus, ...]:
        return (cls.RESOLUE, cls.FERMEE)

    @property
    def is_terminal(self) -> bool:
        return self in self.terminal_statuses()


class Priority(str, enum.Enum):
    BASSE = "basse"
    NORMALE = "normale"
    HAUTE = "haute"
    CRITIQUE = "critique"


class Category(str, enum.Enum):
    TECHNIQUE = "technique"
    ADMINISTRATIVE = "administrative"
    FINANCIERE = "financiere"
    RH = "rh"
    AUTRE = "autre"


class Stage(str, enum.Enum):
    """Pipeline stage owning one WorkflowStep slot per request."""

    VERIFICATION = "verification"
    VALIDATION_DEC = "validation_dec"
    VALIDATION_BAO = "validation_bao"
    ASSIGNATION = "assignation"
    RESOLUTION = "resolution"

    @property
    def order(self) -> int:
        return list(Stage).index(self) + 1


class StepStatus(str, enum.Enum):
    EN_ATTENTE = "en_attente"
    EN_COURS = "en_cours"
    TERMINE = "termine"
    REJETE = "rejete"


@dataclass(frozen=True, slots=True)
class Permission:
    """Atomic capability, unique by its (module, action) pair."""

    module: str
    action: str

    @classmethod
    def parse(cls, value: str) -> Permission:
        module, sep, action = value.partition(".")
        if not sep or not module or not action:
            raise ValueError(f"Capability must look like 'module.action': {value!r}")
        return cls(module=module, action=action)

    def __str__(self) -> str:
        return f"{self.module}.{self.action}"


@dataclass(frozen=True, slots=True)
class Role:
    """Named group of permissions. Reference data."""

    name: str
    description: str | None = None
    permissions: frozenset[Permission] = frozenset()


@dataclass(frozen=True, slots=True)
class User:
    """Represents an authenticated actor within the system."""

    user_id: str
    email: str = ""
    name: str = ""
    roles: tuple[Role, ...] = ()
    is_active: bool = True

    @property
    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]


@dataclass(slots=True)
class WorkflowStep:
    """Progress of one stage for one request, mutated in place."""

    stage: Stage
    status: StepStatus = StepStatus.EN_ATTENTE
    assignee_id: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    comment: str | None = None
    id: int | None = None

    @property
    def order(self) -> int:
        return self.stage.order


@dataclass(frozen=True, slots=True)
class HistoryRecord:
    """Write-once entry of the per-request timeline."""

    action: str
    actor_id: str
    timestamp: datetime
    details: str | None = None
    stage: str | None = None
    id: int | None = None


@dataclass(frozen=True, slots=True)
class Comment:
    author_id: str
    content: str
    is_private: bool = False
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None


@dataclass(slots=True)
class AssistanceRequest:
    """Aggregate root of the assistance workflow (the "demande")."""

    id: str
    reference: str
    requester_id: str
    title: str
    description: str
    category: Category = Category.TECHNIQUE
    priority: Priority = Priority.NORMALE
    application_id: int | None = None
    status: RequestStatus = RequestStatus.BROUILLON

    verifier_id: str | None = None
    dec_validator_id: str | None = None
    bao_validator_id: str | None = None
    technician_id: str | None = None
    assigned_by_id: str | None = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    submitted_at: datetime | None = None
    verified_at: datetime | None = None
    dec_validated_at: datetime | None = None
    bao_validated_at: datetime | None = None
    assigned_at: datetime | None = None
    resolved_at: datetime | None = None

    steps: list[WorkflowStep] = field(default_factory=list)
    history: list[HistoryRecord] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    version: int = 1

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def step_for(self, stage: Stage) -> WorkflowStep | None:
        return next((step for step in self.steps if step.stage == stage), None)

    def ensure_step(self, stage: Stage) -> WorkflowStep:
        """Return the step for ``stage``, creating it on first entry."""
        step = self.step_for(stage)
        if step is None:
            step = WorkflowStep(stage=stage)
            self.steps.append(step)
            self.steps.sort(key=lambda s: s.order)
        return step

    def append_history(self, record: HistoryRecord) -> None:
        self.history.append(record)

    def party_ids(self) -> set[str]:
        """Every user bound to the request, requester included."""
        bound = {
            self.requester_id,
            self.verifier_id,
            self.dec_validator_id,
            self.bao_validator_id,
            self.technician_id,
            self.assigned_by_id,
        }
        return {user_id for user_id in bound if user_id}


class AuditAction(str, enum.Enum):
    """Kinds of events kept in the cross-entity audit log."""

    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    CREATE_REQUEST = "CREATE_REQUEST"
    UPDATE_REQUEST = "UPDATE_REQUEST"
    VALIDATE_REQUEST = "VALIDATE_REQUEST"
    REJECT_REQUEST = "REJECT_REQUEST"
    CANCEL_REQUEST = "CANCEL_REQUEST"
    DELETE_REQUEST = "DELETE_REQUEST"
    ACCESS_DENIED = "ACCESS_DENIED"


@dataclass(frozen=True, slots=True)
class AuditContext:
    """Where an action came from, as reported by the transport layer."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class AuditEntry:
    actor_id: str | None
    action: AuditAction
    entity_type: str | None = None
    entity_id: str | None = None
    details: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None


@dataclass(slots=True)
class RequestFilters:
    """Listing criteria. ``requester_id`` narrows to one requester's requests."""

    requester_id: str | None = None
    status: RequestStatus | None = None
    priority: Priority | None = None
    category: Category | None = None
    application_id: int | None = None
    search: str | None = None
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.limit


@dataclass(slots=True)
class Page:
    items: list
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit
