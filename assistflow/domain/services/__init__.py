"""Domain services."""

from assistflow.domain.services.audit import AuditRecorder, AuditSink
from assistflow.domain.services.authorization import AuthorizationGate
from assistflow.domain.services.dashboard import DashboardService, DashboardStats
from assistflow.domain.services.engine import WorkflowEngine
from assistflow.domain.services.notifications import (
    LoggingNotificationSink,
    NotificationDispatcher,
    NotificationSink,
)
from assistflow.domain.services.references import ReferenceGenerator
from assistflow.domain.services.requests import RequestService
from assistflow.domain.services.transitions import TRANSITIONS, TransitionPayload, TransitionRule
from assistflow.domain.services.workflow import WorkflowService

__all__ = [
    "AuditRecorder",
    "AuditSink",
    "AuthorizationGate",
    "DashboardService",
    "DashboardStats",
    "LoggingNotificationSink",
    "NotificationDispatcher",
    "NotificationSink",
    "ReferenceGenerator",
    "RequestService",
    "TRANSITIONS",
    "TransitionPayload",
    "TransitionRule",
    "WorkflowEngine",
    "WorkflowService",
]
