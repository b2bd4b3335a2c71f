"""Integration tests for the assistance request endpoints."""

from __future__ import annotations

import pytest
from fastapi import status
from httpx import AsyncClient

from tests.utils import auth_headers


async def create(client: AsyncClient, user, **body) -> dict:
    body.setdefault("title", "Souris défectueuse")
    body.setdefault("description", "Le clic droit ne fonctionne plus.")
    response = await client.post("/requests", json=body, headers=auth_headers(user))
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


async def fire(client: AsyncClient, request_id: str, name: str, user, body: dict | None = None):
    return await client.post(
        f"/requests/{request_id}/transitions/{name}",
        json=body,
        headers=auth_headers(user),
    )


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_draft(self, async_client: AsyncClient, actors) -> None:
        """Creating a request returns the stored draft."""
        data = await create(async_client, actors.requester, priority="haute")

        assert data["status"] == "brouillon"
        assert data["priority"] == "haute"
        assert data["reference"].startswith("EN-ASSGEN0001-")
        assert data["requester_id"] == actors.requester.user_id
        assert data["version"] == 1
        assert data["history"] == []

    @pytest.mark.asyncio
    async def test_create_requires_token(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/requests", json={"title": "t", "description": "d"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_create_requires_capability(self, async_client: AsyncClient, actors) -> None:
        response = await async_client.post(
            "/requests",
            json={"title": "t", "description": "d"},
            headers=auth_headers(actors.auditor),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_invalid_body(self, async_client: AsyncClient, actors) -> None:
        response = await async_client.post(
            "/requests",
            json={"title": "", "description": "d", "priority": "urgente"},
            headers=auth_headers(actors.requester),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_read_restricted_to_parties(self, async_client: AsyncClient, actors) -> None:
        data = await create(async_client, actors.requester)
        url = f"/requests/{data['id']}"

        own = await async_client.get(url, headers=auth_headers(actors.requester))
        foreign = await async_client.get(url, headers=auth_headers(actors.other_requester))
        auditor = await async_client.get(url, headers=auth_headers(actors.auditor))
        missing = await async_client.get("/requests/nope", headers=auth_headers(actors.auditor))

        assert own.status_code == status.HTTP_200_OK
        assert foreign.status_code == status.HTTP_403_FORBIDDEN
        assert auditor.status_code == status.HTTP_200_OK
        assert missing.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_list_with_filters(self, async_client: AsyncClient, actors) -> None:
        await create(async_client, actors.requester, title="Imprimante", priority="haute")
        await create(async_client, actors.requester, title="VPN")
        await create(async_client, actors.other_requester, title="Badge")

        mine = await async_client.get("/requests", headers=auth_headers(actors.requester))
        high = await async_client.get(
            "/requests", params={"priority": "haute"}, headers=auth_headers(actors.requester)
        )
        everything = await async_client.get(
            "/requests", params={"scope": "all", "limit": 2}, headers=auth_headers(actors.auditor)
        )
        refused = await async_client.get(
            "/requests", params={"scope": "all"}, headers=auth_headers(actors.requester)
        )

        assert mine.json()["total"] == 2
        assert [item["title"] for item in high.json()["items"]] == ["Imprimante"]
        assert everything.json()["total"] == 3
        assert everything.json()["total_pages"] == 2
        assert len(everything.json()["items"]) == 2
        assert refused.status_code == status.HTTP_403_FORBIDDEN


class TestEditAndComment:
    @pytest.mark.asyncio
    async def test_patch_draft(self, async_client: AsyncClient, actors) -> None:
        data = await create(async_client, actors.requester)

        response = await async_client.patch(
            f"/requests/{data['id']}",
            json={"title": "Souris et clavier", "version": 1},
            headers=auth_headers(actors.requester),
        )
        stale = await async_client.patch(
            f"/requests/{data['id']}",
            json={"title": "Autre", "version": 1},
            headers=auth_headers(actors.requester),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["title"] == "Souris et clavier"
        assert response.json()["version"] == 2
        assert stale.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.asyncio
    async def test_patch_after_submit_conflicts(self, async_client: AsyncClient, actors) -> None:
        data = await create(async_client, actors.requester)
        await fire(async_client, data["id"], "submit", actors.requester)

        response = await async_client.patch(
            f"/requests/{data['id']}", json={"title": "x"}, headers=auth_headers(actors.requester)
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.asyncio
    async def test_private_comment_hidden_from_requester(
        self, async_client: AsyncClient, actors
    ) -> None:
        data = await create(async_client, actors.requester)
        url = f"/requests/{data['id']}/comments"

        created = await async_client.post(
            url, json={"content": "À vérifier avec le BAO", "is_private": True},
            headers=auth_headers(actors.dispatcher),
        )
        detail = await async_client.get(f"/requests/{data['id']}", headers=auth_headers(actors.requester))

        assert created.status_code == status.HTTP_201_CREATED
        assert created.json()["is_private"] is True
        assert detail.json()["comments"] == []


class TestTransitions:
    @pytest.mark.asyncio
    async def test_full_lifecycle_over_http(
        self, async_client: AsyncClient, actors, notification_sink
    ) -> None:
        data = await create(async_client, actors.requester)
        request_id = data["id"]
        path = [
            ("submit", actors.requester, None),
            ("start_verification", actors.verifier, None),
            ("approve_verification", actors.verifier, {"comment": "ok"}),
            ("approve_dec", actors.dec, None),
            ("approve_bao", actors.bao, None),
            ("assign", actors.dispatcher, {"technician_id": actors.technician.user_id}),
            ("start_processing", actors.technician, None),
            ("resolve", actors.technician, {"comment": "souris remplacée"}),
            ("close", actors.requester, None),
        ]

        for name, user, body in path:
            response = await fire(async_client, request_id, name, user, body)
            assert response.status_code == status.HTTP_200_OK, (name, response.text)

        final = response.json()
        assert final["status"] == "fermee"
        assert final["version"] == 10
        assert [record["action"] for record in final["history"]][-1] == "closed"
        assert [step["stage"] for step in final["steps"]] == [
            "verification",
            "validation_dec",
            "validation_bao",
            "assignation",
            "resolution",
        ]
        assert [step["order"] for step in final["steps"]] == [1, 2, 3, 4, 5]
        assert notification_sink.sent

    @pytest.mark.asyncio
    async def test_error_mapping(self, async_client: AsyncClient, actors) -> None:
        data = await create(async_client, actors.requester)
        request_id = data["id"]

        illegal = await fire(async_client, request_id, "approve_dec", actors.dec)
        await fire(async_client, request_id, "submit", actors.requester)
        denied = await fire(async_client, request_id, "start_verification", actors.requester)
        await fire(async_client, request_id, "start_verification", actors.verifier)
        missing_reason = await fire(async_client, request_id, "reject_verification", actors.verifier, {})
        unknown = await fire(async_client, "nope", "submit", actors.requester)

        assert illegal.status_code == status.HTTP_409_CONFLICT
        assert denied.status_code == status.HTTP_403_FORBIDDEN
        assert missing_reason.status_code == 422
        assert "reason" in missing_reason.json()["detail"]
        assert unknown.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_available_transitions(self, async_client: AsyncClient, actors) -> None:
        data = await create(async_client, actors.requester)
        await fire(async_client, data["id"], "submit", actors.requester)
        await fire(async_client, data["id"], "start_verification", actors.verifier)
        url = f"/requests/{data['id']}/transitions"

        as_verifier = await async_client.get(url, headers=auth_headers(actors.verifier))
        as_requester = await async_client.get(url, headers=auth_headers(actors.requester))

        assert as_verifier.json() == {
            "request_id": data["id"],
            "status": "verification",
            "transitions": ["approve_verification", "reject_verification", "request_modification"],
        }
        assert as_requester.json()["transitions"] == []


class TestDashboard:
    @pytest.mark.asyncio
    async def test_stats(self, async_client: AsyncClient, actors) -> None:
        data = await create(async_client, actors.requester)
        await create(async_client, actors.other_requester)
        await fire(async_client, data["id"], "submit", actors.requester)

        own = await async_client.get("/dashboard/stats", headers=auth_headers(actors.requester))
        overall = await async_client.get("/dashboard/stats", headers=auth_headers(actors.admin))

        assert own.status_code == status.HTTP_200_OK
        assert own.json()["scope"] == "mine"
        assert own.json()["total"] == 1
        assert own.json()["pending"] == 1
        assert own.json()["by_status"] == {"soumise": 1}
        assert [item["id"] for item in own.json()["recent"]] == [data["id"]]
        assert overall.json()["scope"] == "all"
        assert overall.json()["total"] == 2
