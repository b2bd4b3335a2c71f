from assistflow.domain.models import (
    AssistanceRequest,
    AuditAction,
    AuditContext,
    AuditEntry,
    Category,
    Comment,
    HistoryRecord,
    Page,
    Permission,
    Priority,
    RequestFilters,
    RequestStatus,
    Role,
    Stage,
    StepStatus,
    User,
    WorkflowStep,
)

__all__ = [
    "AssistanceRequest",
    "AuditAction",
    "AuditContext",
    "AuditEntry",
    "Category",
    "Comment",
    "HistoryRecord",
    "Page",
    "Permission",
    "Priority",
    "RequestFilters",
    "RequestStatus",
    "Role",
    "Stage",
    "StepStatus",
    "User",
    "WorkflowStep",
]
