"""
Transition notifications.

Delivery is fire-and-forget: it happens after the transition is committed and
a failing sink is only logged.
"""

from __future__ import annotations

from typing import Protocol

import structlog
from assistflow.domain.models import AssistanceRequest, User
from assistflow.domain.services.transitions import TransitionRule

logger = structlog.get_logger()


class NotificationSink(Protocol):
    async def notify(self, recipient_user_id: str, event: str, request_reference: str) -> None: ...


class LoggingNotificationSink:
    """Default sink: records the notification in the structured log only."""

    async def notify(self, recipient_user_id: str, event: str, request_reference: str) -> None:
        await logger.ainfo(
            "notification_logged",
            recipient_user_id=recipient_user_id,
            notification_event=event,
            reference=request_reference,
        )


class NotificationDispatcher:
    def __init__(self, sink: NotificationSink | None = None) -> None:
        self.sink = sink or LoggingNotificationSink()

    @staticmethod
    def recipients(rule: TransitionRule, request: AssistanceRequest, actor: User) -> list[str]:
        """Parties named by the rule, without the actor and without duplicates."""
        found: list[str] = []
        for attribute in rule.notify:
            user_id = getattr(request, attribute)
            if user_id and user_id != actor.user_id and user_id not in found:
                found.append(user_id)
        return found

    async def dispatch(self, rule: TransitionRule, request: AssistanceRequest, actor: User) -> int:
        """Send ``rule.label`` to every recipient; return how many were accepted."""
        delivered = 0
        for recipient in self.recipients(rule, request, actor):
            try:
                await self.sink.notify(recipient, rule.label, request.reference)
            except Exception as exc:
                await logger.awarning(
                    "notification_failed",
                    recipient_user_id=recipient,
                    notification_event=rule.label,
                    reference=request.reference,
                    error=str(exc),
                )
                continue
            delivered += 1
        return delivered
