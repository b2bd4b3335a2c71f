"""Integration tests for authentication and audit endpoints."""

from __future__ import annotations

import pytest
from fastapi import status
from httpx import AsyncClient

from tests.utils import PASSWORD, auth_headers, create_account


async def audit_actions(client: AsyncClient, auditor, **params) -> list[str]:
    response = await client.get("/audit", params=params, headers=auth_headers(auditor))
    assert response.status_code == status.HTTP_200_OK
    return [entry["action"] for entry in response.json()["items"]]


class TestLoginEndpoint:
    """Tests for POST /auth/login endpoint."""

    @pytest.mark.asyncio
    async def test_login_success(self, async_client: AsyncClient, actors) -> None:
        """Successful login should return user, permissions and tokens."""
        response = await async_client.post(
            "/auth/login",
            json={"email": "verif@example.com", "password": PASSWORD},
            headers={"User-Agent": "pytest-agent"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["user"]["id"] == actors.verifier.user_id
        assert data["user"]["roles"] == ["VERIFICATEUR"]
        assert "assistance.verify" in data["user"]["permissions"]
        assert data["tokens"]["token_type"] == "bearer"
        assert data["tokens"]["refresh_token"]

        audit = await async_client.get(
            "/audit", params={"action": "LOGIN"}, headers=auth_headers(actors.auditor)
        )
        [entry] = audit.json()["items"]
        assert entry["actor_id"] == actors.verifier.user_id
        assert entry["user_agent"] == "pytest-agent"

    @pytest.mark.asyncio
    async def test_login_email_is_case_insensitive(self, async_client: AsyncClient, actors) -> None:
        response = await async_client.post(
            "/auth/login", json={"email": "Verif@Example.com", "password": PASSWORD}
        )

        assert response.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, async_client: AsyncClient, actors) -> None:
        """Wrong password should return 401 and leave an ACCESS_DENIED trace."""
        response = await async_client.post(
            "/auth/login", json={"email": "verif@example.com", "password": "wrong-password"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert await audit_actions(async_client, actors.auditor, action="ACCESS_DENIED") == [
            "ACCESS_DENIED"
        ]

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, async_client: AsyncClient, actors) -> None:
        response = await async_client.post(
            "/auth/login", json={"email": "nobody@example.com", "password": PASSWORD}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_login_inactive_user(
        self, async_client: AsyncClient, session_factory, password_hash: str
    ) -> None:
        """Inactive accounts may not sign in."""
        await create_account(
            session_factory, "parti@example.com", "UTILISATEUR", password_hash=password_hash, is_active=False
        )

        response = await async_client.post(
            "/auth/login", json={"email": "parti@example.com", "password": PASSWORD}
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestSessionEndpoints:
    @pytest.mark.asyncio
    async def test_refresh(self, async_client: AsyncClient, actors) -> None:
        login = await async_client.post(
            "/auth/login", json={"email": "agent@example.com", "password": PASSWORD}
        )
        tokens = login.json()["tokens"]

        refreshed = await async_client.post(
            "/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        misused = await async_client.post(
            "/auth/refresh", json={"refresh_token": tokens["access_token"]}
        )

        assert refreshed.status_code == status.HTTP_200_OK
        assert refreshed.json()["user"]["id"] == actors.requester.user_id
        assert misused.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_me_reflects_stored_roles(self, async_client: AsyncClient, actors) -> None:
        response = await async_client.get("/auth/me", headers=auth_headers(actors.dispatcher))

        assert response.status_code == status.HTTP_200_OK
        user = response.json()["user"]
        assert user["roles"] == ["ADMIN_FONCTIONNEL"]
        assert "assistance.assign" in user["permissions"]

    @pytest.mark.asyncio
    async def test_me_requires_token(self, async_client: AsyncClient) -> None:
        missing = await async_client.get("/auth/me")
        garbage = await async_client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert missing.status_code == status.HTTP_401_UNAUTHORIZED
        assert garbage.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_logout_is_audited(self, async_client: AsyncClient, actors) -> None:
        response = await async_client.post("/auth/logout", headers=auth_headers(actors.bao))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert await audit_actions(
            async_client, actors.auditor, actor_id=actors.bao.user_id
        ) == ["LOGOUT"]


class TestAuditEndpoint:
    @pytest.mark.asyncio
    async def test_requires_audit_read(self, async_client: AsyncClient, actors) -> None:
        """Callers without audit.read get 403 and are themselves audited."""
        response = await async_client.get("/audit", headers=auth_headers(actors.requester))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert await audit_actions(
            async_client, actors.auditor, actor_id=actors.requester.user_id
        ) == ["ACCESS_DENIED"]

    @pytest.mark.asyncio
    async def test_transition_denial_is_listed(self, async_client: AsyncClient, actors) -> None:
        created = await async_client.post(
            "/requests",
            json={"title": "Licence", "description": "Licence expirée"},
            headers=auth_headers(actors.requester),
        )
        request_id = created.json()["id"]

        await async_client.post(
            f"/requests/{request_id}/transitions/submit", headers=auth_headers(actors.verifier)
        )

        response = await async_client.get(
            "/audit",
            params={"entity_type": "assistance_request", "entity_id": request_id},
            headers=auth_headers(actors.auditor),
        )
        actions = [entry["action"] for entry in response.json()["items"]]
        assert sorted(actions) == ["ACCESS_DENIED", "CREATE_REQUEST"]
