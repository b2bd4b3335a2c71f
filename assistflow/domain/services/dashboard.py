from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from assistflow.domain.models import AssistanceRequest, RequestStatus, User, utcnow
from assistflow.domain.reference_data import ASSISTANCE_READ
from assistflow.domain.services.authorization import AuthorizationGate
from assistflow.infrastructure.repositories.unit_of_work import UnitOfWork

RECENT_LIMIT = 5


def calculate_evolution(current: int, previous: int) -> int:
    """Month-over-month change in percent."""
    if previous == 0:
        return 100 if current > 0 else 0
    return round((current - previous) / previous * 100)


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Start of the current month and start of the previous one."""
    current = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if current.month == 1:
        previous = current.replace(year=current.year - 1, month=12)
    else:
        previous = current.replace(month=current.month - 1)
    return current, previous


@dataclass(slots=True)
class DashboardStats:
    scope: str
    total: int
    pending: int
    in_progress: int
    resolved: int
    evolution_total: int
    evolution_pending: int
    evolution_in_progress: int
    evolution_resolved: int
    by_status: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    recent: list[AssistanceRequest] = field(default_factory=list)


class DashboardService:
    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        *,
        gate: AuthorizationGate | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.uow_factory = uow_factory
        self.gate = gate or AuthorizationGate()
        self.clock = clock

    async def get_stats(self, actor: User) -> DashboardStats:
        """Counters over every request for ``assistance.read`` holders, else the actor's own."""
        global_view = self.gate.authorize(actor, ASSISTANCE_READ)
        requester_id = None if global_view else actor.user_id
        month_start, previous_start = month_bounds(self.clock())
        buckets = {
            "total": None,
            "pending": RequestStatus.pending_statuses(),
            "in_progress": RequestStatus.in_progress_statuses(),
            "resolved": RequestStatus.resolved_statuses(),
        }

        counts: dict[str, int] = {}
        evolution: dict[str, int] = {}
        async with self.uow_factory() as uow:
            repo = uow.requests
            for name, statuses in buckets.items():
                counts[name] = await repo.count_requests(requester_id=requester_id, statuses=statuses)
                this_month = await repo.count_requests(
                    requester_id=requester_id, statuses=statuses, since=month_start
                )
                last_month = await repo.count_requests(
                    requester_id=requester_id,
                    statuses=statuses,
                    since=previous_start,
                    until=month_start,
                )
                evolution[name] = calculate_evolution(this_month, last_month)
            by_status = await repo.count_grouped("status", requester_id=requester_id)
            by_priority = await repo.count_grouped("priority", requester_id=requester_id)
            recent = await repo.recent_requests(requester_id=requester_id, limit=RECENT_LIMIT)

        return DashboardStats(
            scope="all" if global_view else "mine",
            total=counts["total"],
            pending=counts["pending"],
            in_progress=counts["in_progress"],
            resolved=counts["resolved"],
            evolution_total=evolution["total"],
            evolution_pending=evolution["pending"],
            evolution_in_progress=evolution["in_progress"],
            evolution_resolved=evolution["resolved"],
            by_status=by_status,
            by_priority=by_priority,
            recent=recent,
        )
