"""Unit tests for the post-commit side channels: notifications and audit."""

from __future__ import annotations

from assistflow.domain.models import AuditAction, AuditContext, RequestStatus
from assistflow.domain.services.audit import AuditRecorder
from assistflow.domain.services.notifications import (
    LoggingNotificationSink,
    NotificationDispatcher,
)
from assistflow.domain.services.transitions import lookup

from tests.utils import (
    FailingSink,
    MemoryAuditSink,
    RecordingNotificationSink,
    make_request,
    make_user,
)

S = RequestStatus


class TestRecipients:
    def test_assign_notifies_requester_and_technician(self) -> None:
        request = make_request(technician_id="tech")
        rule = lookup(S.APPROUVEE, "assign")

        assert NotificationDispatcher.recipients(rule, request, make_user("bao")) == [
            "requester",
            "tech",
        ]

    def test_actor_is_never_notified(self) -> None:
        request = make_request(technician_id="tech")
        rule = lookup(S.RESOLUE, "close")

        assert NotificationDispatcher.recipients(rule, request, make_user("requester")) == ["tech"]

    def test_submit_notifies_nobody(self) -> None:
        rule = lookup(S.BROUILLON, "submit")

        assert NotificationDispatcher.recipients(rule, make_request(), make_user("requester")) == []

    def test_unset_party_skipped(self) -> None:
        rule = lookup(S.RESOLUE, "close")

        assert NotificationDispatcher.recipients(rule, make_request(), make_user("admin")) == [
            "requester"
        ]


class TestDispatch:
    async def test_sends_label_and_reference(self) -> None:
        sink = RecordingNotificationSink()
        request = make_request(technician_id="tech")

        delivered = await NotificationDispatcher(sink).dispatch(
            lookup(S.APPROUVEE, "assign"), request, make_user("bao")
        )

        assert delivered == 2
        assert sink.sent == [
            ("requester", "assigned", "EN-ASSGEN0001-2026"),
            ("tech", "assigned", "EN-ASSGEN0001-2026"),
        ]

    async def test_failures_are_swallowed(self) -> None:
        delivered = await NotificationDispatcher(FailingSink()).dispatch(
            lookup(S.VALIDATION_DEC, "approve_dec"), make_request(), make_user("dec")
        )

        assert delivered == 0

    async def test_logging_sink_is_default(self) -> None:
        dispatcher = NotificationDispatcher()

        assert isinstance(dispatcher.sink, LoggingNotificationSink)
        assert (
            await dispatcher.dispatch(
                lookup(S.VERIFICATION, "approve_verification"), make_request(), make_user("v")
            )
            == 1
        )


class TestAuditRecorder:
    async def test_entry_carries_context(self) -> None:
        sink = MemoryAuditSink()

        await AuditRecorder(sink).record(
            actor_id="u1",
            action=AuditAction.VALIDATE_REQUEST,
            entity_type="assistance_request",
            entity_id="req-1",
            details="validation_dec -> validation_bao",
            context=AuditContext(ip_address="10.0.0.8", user_agent="pytest"),
        )

        [entry] = sink.entries
        assert entry.actor_id == "u1"
        assert entry.action is AuditAction.VALIDATE_REQUEST
        assert entry.entity_id == "req-1"
        assert entry.ip_address == "10.0.0.8"
        assert entry.user_agent == "pytest"
        assert entry.created_at.tzinfo is not None

    async def test_sink_failure_does_not_propagate(self) -> None:
        await AuditRecorder(FailingSink()).record(actor_id=None, action=AuditAction.ACCESS_DENIED)
