"""Typed failures raised by the workflow core and its repositories."""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for every failure reported by the workflow core."""


class IllegalTransitionError(WorkflowError):
    """No edge named ``transition`` leaves the request's current status."""

    def __init__(self, transition: str, status: str) -> None:
        super().__init__(f"Transition '{transition}' is not allowed from status '{status}'")
        self.transition = transition
        self.status = status


class UnauthorizedError(WorkflowError):
    """The actor lacks the capability or party binding the action requires."""

    def __init__(self, actor_id: str, action: str, requirement: str) -> None:
        super().__init__(f"User {actor_id} may not '{action}': requires {requirement}")
        self.actor_id = actor_id
        self.action = action
        self.requirement = requirement


class InvalidPayloadError(WorkflowError):
    """A field the transition needs is missing or unusable."""

    def __init__(self, transition: str, field: str, reason: str = "is required") -> None:
        super().__init__(f"Transition '{transition}': '{field}' {reason}")
        self.transition = transition
        self.field = field


class StaleStateError(WorkflowError):
    """The request changed since it was loaded; re-read and decide again."""

    def __init__(self, request_id: str, expected_version: int) -> None:
        super().__init__(
            f"Request {request_id} was modified concurrently (expected version {expected_version})"
        )
        self.request_id = request_id
        self.expected_version = expected_version


class RequestNotFoundError(WorkflowError):
    """Raised when the request does not exist."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Request {request_id} not found")
        self.request_id = request_id


class ReferenceGenerationError(WorkflowError):
    """Raised when no unique reference could be produced."""
