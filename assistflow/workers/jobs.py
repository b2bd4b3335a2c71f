"""
RQ jobs.

Jobs run in a plain worker process, so each entry point drives its own event
loop with ``asyncio.run``.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from assistflow.domain.models import User
from assistflow.infrastructure.db.session import dispose_engine, get_session_factory
from assistflow.infrastructure.repositories.unit_of_work import UnitOfWork
from assistflow.libs.resend_client import EmailMessage, ResendClient, ResendClientError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = structlog.get_logger()

EVENT_SUBJECTS = {
    "verification_started": "Votre demande {reference} est en cours de vérification",
    "verification_approved": "Votre demande {reference} a été vérifiée",
    "verification_rejected": "Votre demande {reference} a été rejetée",
    "modification_requested": "Votre demande {reference} doit être modifiée",
    "delegue_approved": "Votre demande {reference} a été validée par le délégué",
    "delegue_rejected": "Votre demande {reference} a été rejetée par le délégué",
    "bao_approved": "Votre demande {reference} a été approuvée",
    "bao_rejected": "Votre demande {reference} a été rejetée par le BAO",
    "assigned": "La demande {reference} a été assignée",
    "processing_started": "La demande {reference} est en cours de traitement",
    "resolved": "La demande {reference} a été résolue",
    "closed": "La demande {reference} a été fermée",
}


def build_message(recipient: User, event: str, reference: str) -> EmailMessage:
    subject = EVENT_SUBJECTS.get(event, "Mise à jour de la demande {reference}").format(
        reference=reference
    )
    greeting = f"Bonjour {recipient.name}," if recipient.name else "Bonjour,"
    text = f"{greeting}\n\n{subject}.\n"
    return EmailMessage(to=[recipient.email], subject=subject, text=text)


def deliver_notification_job(recipient_user_id: str, event: str, reference: str) -> dict[str, Any]:
    """Entry point for emailing one workflow notification."""
    return asyncio.run(_run_delivery(recipient_user_id, event, reference))


async def _run_delivery(recipient_user_id: str, event: str, reference: str) -> dict[str, Any]:
    try:
        return await deliver_notification(recipient_user_id, event, reference)
    finally:
        await dispose_engine()


async def deliver_notification(
    recipient_user_id: str,
    event: str,
    reference: str,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    client: ResendClient | None = None,
) -> dict[str, Any]:
    async with UnitOfWork(session_factory or get_session_factory()) as uow:
        recipient = await uow.users.get_actor(recipient_user_id)

    if recipient is None or not recipient.email:
        await logger.awarning(
            "notification_recipient_missing",
            recipient_user_id=recipient_user_id,
            notification_event=event,
        )
        return {"status": "skipped", "recipient_user_id": recipient_user_id}

    message = build_message(recipient, event, reference)
    try:
        response = await (client or ResendClient()).send(message)
    except ResendClientError as exc:
        await logger.awarning(
            "notification_delivery_failed",
            recipient_user_id=recipient_user_id,
            notification_event=event,
            reference=reference,
            error=str(exc),
        )
        return {"status": "failed", "error": str(exc)}

    await logger.ainfo(
        "notification_delivered",
        recipient_user_id=recipient_user_id,
        notification_event=event,
        reference=reference,
        email_id=response.id,
    )
    return {"status": "sent", "email_id": response.id}
