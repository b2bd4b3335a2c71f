from __future__ import annotations

from assistflow.api.deps import get_current_user, get_dashboard_service
from assistflow.api.schemas.dashboard import DashboardResponse
from assistflow.domain import User
from assistflow.domain.services.dashboard import DashboardService
from fastapi import APIRouter, Depends

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardResponse)
async def dashboard_stats(
    user: User = Depends(get_current_user),  # noqa: B008
    service: DashboardService = Depends(get_dashboard_service),  # noqa: B008
) -> DashboardResponse:
    """Request counters, monthly evolution and the latest requests."""
    stats = await service.get_stats(user)
    return DashboardResponse.model_validate(stats)
