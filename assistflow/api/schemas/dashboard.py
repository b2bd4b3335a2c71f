from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from .requests import RequestSummary


class DashboardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    scope: str
    total: int
    pending: int
    in_progress: int
    resolved: int
    evolution_total: int
    evolution_pending: int
    evolution_in_progress: int
    evolution_resolved: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    recent: list[RequestSummary]
