"""Integration tests for request persistence against SQLite."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime

import pytest
from assistflow.domain.errors import RequestNotFoundError, StaleStateError
from assistflow.domain.models import (
    AssistanceRequest,
    Priority,
    RequestFilters,
    RequestStatus,
    Stage,
    StepStatus,
)
from assistflow.domain.services.engine import WorkflowEngine
from assistflow.infrastructure.db.models import RequestHistoryModel
from assistflow.infrastructure.repositories import UnitOfWork
from sqlalchemy import select

from tests.utils import make_request

UowFactory = Callable[[], UnitOfWork]


async def store(uow_factory: UowFactory, **overrides) -> AssistanceRequest:
    overrides.setdefault("id", str(uuid.uuid4()))
    overrides.setdefault("reference", f"EN-ASSGEN{uuid.uuid4().hex[:6]}")
    async with uow_factory() as uow:
        return await uow.requests.add_request(make_request(**overrides))


class TestLoadAndSave:
    """Tests for the versioned save."""

    @pytest.mark.asyncio
    async def test_round_trip(self, uow_factory: UowFactory, actors) -> None:
        created = await store(uow_factory, requester_id=actors.requester.user_id, priority=Priority.HAUTE)

        async with uow_factory() as uow:
            loaded = await uow.requests.load_request(created.id)

        assert loaded.reference == created.reference
        assert loaded.priority == Priority.HAUTE
        assert loaded.status == RequestStatus.BROUILLON
        assert loaded.version == 1
        assert loaded.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_missing_request(self, uow_factory: UowFactory) -> None:
        async with uow_factory() as uow:
            with pytest.raises(RequestNotFoundError):
                await uow.requests.load_request("does-not-exist")

    @pytest.mark.asyncio
    async def test_save_bumps_version_and_persists_ledgers(
        self, uow_factory: UowFactory, actors
    ) -> None:
        engine = WorkflowEngine()
        created = await store(uow_factory, requester_id=actors.requester.user_id)

        async with uow_factory() as uow:
            request = await uow.requests.load_request(created.id)
            engine.apply(request, "submit", actors.requester)
            await uow.requests.save_request(request)

        async with uow_factory() as uow:
            request = await uow.requests.load_request(created.id)
            engine.apply(request, "start_verification", actors.verifier, {"comment": "pris"})
            saved = await uow.requests.save_request(request)

        assert saved.version == 3
        assert saved.status == RequestStatus.VERIFICATION
        assert [record.action for record in saved.history] == ["submission", "verification_started"]
        assert all(record.id is not None for record in saved.history)
        [step] = saved.steps
        assert step.stage == Stage.VERIFICATION
        assert step.status == StepStatus.EN_COURS
        assert step.comment == "pris"

    @pytest.mark.asyncio
    async def test_existing_steps_are_updated(self, uow_factory: UowFactory, actors) -> None:
        engine = WorkflowEngine()
        created = await store(
            uow_factory, requester_id=actors.requester.user_id, status=RequestStatus.SOUMISE
        )

        for name, actor in (("start_verification", actors.verifier), ("approve_verification", actors.verifier)):
            async with uow_factory() as uow:
                request = await uow.requests.load_request(created.id)
                engine.apply(request, name, actor)
                await uow.requests.save_request(request)

        async with uow_factory() as uow:
            request = await uow.requests.load_request(created.id)

        assert [(step.stage, step.status) for step in request.steps] == [
            (Stage.VERIFICATION, StepStatus.TERMINE),
            (Stage.VALIDATION_DEC, StepStatus.EN_COURS),
        ]

    @pytest.mark.asyncio
    async def test_stale_save_rejected(self, uow_factory: UowFactory, actors) -> None:
        """Two copies loaded at the same version: the second save loses."""
        engine = WorkflowEngine()
        created = await store(uow_factory, requester_id=actors.requester.user_id)

        async with uow_factory() as uow:
            first = await uow.requests.load_request(created.id)
        async with uow_factory() as uow:
            second = await uow.requests.load_request(created.id)

        engine.apply(first, "submit", actors.requester)
        async with uow_factory() as uow:
            await uow.requests.save_request(first)

        engine.apply(second, "submit", actors.requester)
        with pytest.raises(StaleStateError) as exc_info:
            async with uow_factory() as uow:
                await uow.requests.save_request(second)

        assert exc_info.value.expected_version == 1
        async with uow_factory() as uow:
            stored = await uow.requests.load_request(created.id)
        assert stored.version == 2
        assert len(stored.history) == 1

    @pytest.mark.asyncio
    async def test_history_positions_follow_append_order(
        self, uow_factory: UowFactory, session_factory, actors
    ) -> None:
        engine = WorkflowEngine()
        created = await store(uow_factory, requester_id=actors.requester.user_id)
        steps = [
            ("submit", actors.requester, {}),
            ("start_verification", actors.verifier, {}),
            ("request_modification", actors.verifier, {"reason": "préciser"}),
            ("submit", actors.requester, {}),
        ]
        for name, actor, payload in steps:
            async with uow_factory() as uow:
                request = await uow.requests.load_request(created.id)
                engine.apply(request, name, actor, payload)
                await uow.requests.save_request(request)

        async with session_factory() as session:
            rows = (
                await session.scalars(
                    select(RequestHistoryModel)
                    .where(RequestHistoryModel.request_id == created.id)
                    .order_by(RequestHistoryModel.position)
                )
            ).all()

        assert [row.position for row in rows] == [0, 1, 2, 3]
        assert [row.action for row in rows] == [
            "submission",
            "verification_started",
            "modification_requested",
            "submission",
        ]


class TestListing:
    @pytest.mark.asyncio
    async def test_filters_and_search(self, uow_factory: UowFactory, actors) -> None:
        mine = actors.requester.user_id
        await store(uow_factory, requester_id=mine, title="Imprimante HS", priority=Priority.HAUTE)
        await store(uow_factory, requester_id=mine, title="Accès VPN", status=RequestStatus.SOUMISE)
        await store(uow_factory, requester_id=actors.other_requester.user_id, title="Imprimante lente")

        async with uow_factory() as uow:
            by_owner = await uow.requests.list_requests(RequestFilters(requester_id=mine))
            by_search = await uow.requests.list_requests(RequestFilters(search="vpn"))
            by_status = await uow.requests.list_requests(RequestFilters(status=RequestStatus.SOUMISE))
            by_priority = await uow.requests.list_requests(
                RequestFilters(requester_id=mine, priority=Priority.HAUTE)
            )

        assert by_owner.total == 2
        assert [item.title for item in by_search.items] == ["Accès VPN"]
        assert [item.title for item in by_status.items] == ["Accès VPN"]
        assert [item.title for item in by_priority.items] == ["Imprimante HS"]

    @pytest.mark.asyncio
    async def test_pagination(self, uow_factory: UowFactory, actors) -> None:
        for _ in range(5):
            await store(uow_factory, requester_id=actors.requester.user_id)

        async with uow_factory() as uow:
            page = await uow.requests.list_requests(RequestFilters(page=2, limit=2))
            last = await uow.requests.list_requests(RequestFilters(page=3, limit=2))

        assert page.total == 5
        assert page.total_pages == 3
        assert len(page.items) == 2
        assert len(last.items) == 1


class TestReferenceSource:
    @pytest.mark.asyncio
    async def test_yearly_count_per_application(self, uow_factory: UowFactory, actors) -> None:
        async with uow_factory() as uow:
            app_id = await uow.requests.add_application("Gestion Des Congés")

        this_year = datetime(2026, 5, 1, tzinfo=UTC)
        last_year = datetime(2025, 5, 1, tzinfo=UTC)
        await store(uow_factory, requester_id=actors.requester.user_id, application_id=app_id, created_at=this_year)
        await store(uow_factory, requester_id=actors.requester.user_id, application_id=app_id, created_at=last_year)
        await store(uow_factory, requester_id=actors.requester.user_id, created_at=this_year, reference="EN-ASSGEN0001-2026")

        async with uow_factory() as uow:
            assert await uow.requests.application_name(app_id) == "Gestion Des Congés"
            assert await uow.requests.application_name(None) is None
            assert await uow.requests.count_for_application(app_id, 2026) == 1
            assert await uow.requests.count_for_application(None, 2026) == 1
            assert await uow.requests.reference_exists("EN-ASSGEN0001-2026")
            assert not await uow.requests.reference_exists("EN-ASSGEN0002-2026")
