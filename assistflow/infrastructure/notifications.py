"""Notification sinks backed by infrastructure (Redis/RQ)."""

from __future__ import annotations

import asyncio

import structlog
from assistflow.core.config import Settings
from assistflow.domain.services.notifications import LoggingNotificationSink, NotificationSink
from redis import Redis
from rq import Queue

logger = structlog.get_logger()

DELIVERY_JOB = "assistflow.workers.jobs.deliver_notification_job"


class QueueNotificationSink:
    """Hands each notification to the RQ worker, which emails the recipient."""

    def __init__(self, queue: Queue) -> None:
        self.queue = queue

    async def notify(self, recipient_user_id: str, event: str, request_reference: str) -> None:
        job = await asyncio.to_thread(
            self.queue.enqueue,
            DELIVERY_JOB,
            recipient_user_id,
            event,
            request_reference,
        )
        await logger.ainfo(
            "notification_enqueued",
            job_id=job.id,
            queue=self.queue.name,
            recipient_user_id=recipient_user_id,
            notification_event=event,
            reference=request_reference,
        )


def build_notification_sink(settings: Settings) -> NotificationSink:
    if not settings.notifications_enabled:
        return LoggingNotificationSink()
    connection = Redis.from_url(settings.redis_url)
    return QueueNotificationSink(Queue(settings.notification_queue, connection=connection))
