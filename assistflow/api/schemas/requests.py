from __future__ import annotations

from datetime import datetime

from assistflow.domain.models import Category, Priority, RequestStatus, Stage, StepStatus
from pydantic import BaseModel, ConfigDict, Field


class RequestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: Category = Category.TECHNIQUE
    priority: Priority = Priority.NORMALE
    application_id: int | None = None


class RequestUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, min_length=1)
    category: Category | None = None
    priority: Priority | None = None
    version: int | None = Field(None, description="Version the edit was based on")


class TransitionRequest(BaseModel):
    comment: str | None = None
    reason: str | None = None
    technician_id: str | None = None


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    is_private: bool = False


class WorkflowStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stage: Stage
    order: int
    status: StepStatus
    assignee_id: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    comment: str | None = None


class HistoryRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: str
    actor_id: str
    timestamp: datetime
    details: str | None = None
    stage: str | None = None


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    author_id: str
    content: str
    is_private: bool
    created_at: datetime


class RequestSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference: str
    title: str
    category: Category
    priority: Priority
    status: RequestStatus
    application_id: int | None = None
    requester_id: str
    technician_id: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int


class RequestDetail(RequestSummary):
    description: str
    verifier_id: str | None = None
    dec_validator_id: str | None = None
    bao_validator_id: str | None = None
    assigned_by_id: str | None = None
    submitted_at: datetime | None = None
    verified_at: datetime | None = None
    dec_validated_at: datetime | None = None
    bao_validated_at: datetime | None = None
    assigned_at: datetime | None = None
    resolved_at: datetime | None = None
    steps: list[WorkflowStepOut] = Field(default_factory=list)
    history: list[HistoryRecordOut] = Field(default_factory=list)
    comments: list[CommentOut] = Field(default_factory=list)


class RequestPage(BaseModel):
    items: list[RequestSummary]
    page: int
    limit: int
    total: int
    total_pages: int


class AvailableTransitions(BaseModel):
    request_id: str
    status: RequestStatus
    transitions: list[str]
