import pytest
from httpx import AsyncClient
from fastapi import status
from sqlalchemy import select

from huddle.config import settings
from huddle.core.auth import create_access_token
from huddle.models import AdminEmail, Profile, ProfileRole

URL = "/api/webhooks/auth/user-created"


def _signup_payload(user_id: str = "auth-user-1", email: str = "jamie@example.com", **meta):
    return {
        "type": "INSERT",
        "table": "users",
        "schema": "auth",
        "record": {
            "id": user_id,
            "email": email,
            "raw_user_meta_data": meta or {"full_name": "Jamie Doe"},
        },
        "old_record": None,
    }


def _secret_headers(secret: str | None = None) -> dict[str, str]:
    return {"X-Webhook-Secret": secret or settings.WEBHOOK_SECRET or ""}


class TestSignupWebhook:

    @pytest.mark.asyncio
    async def test_creates_profile(self, async_client: AsyncClient, async_session):
        response = await async_client.post(URL, json=_signup_payload(), headers=_secret_headers())

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["created"] is True
        assert data["role"] == "user"

        profile = await async_session.get(Profile, data["profile_id"])
        assert profile.auth_user_id == "auth-user-1"
        assert profile.email == "jamie@example.com"
        assert profile.full_name == "Jamie Doe"
        assert profile.is_active is True

    @pytest.mark.asyncio
    async def test_name_falls_back_to_meta_name(self, async_client: AsyncClient, async_session):
        payload = _signup_payload(name="Sam", avatar_url="https://example.com/sam.png")

        response = await async_client.post(URL, json=payload, headers=_secret_headers())

        profile = await async_session.get(Profile, response.json()["profile_id"])
        assert profile.full_name == "Sam"
        assert profile.avatar_url == "https://example.com/sam.png"

    @pytest.mark.asyncio
    async def test_allowlisted_email_becomes_admin(self, async_client: AsyncClient, async_session):
        async_session.add(AdminEmail(email="lead@example.com"))
        await async_session.commit()

        response = await async_client.post(
            URL,
            json=_signup_payload(user_id="auth-lead", email="Lead@Example.com"),
            headers=_secret_headers(),
        )

        assert response.json()["role"] == "admin"

    @pytest.mark.asyncio
    async def test_redelivery_is_idempotent(self, async_client: AsyncClient, async_session):
        first = await async_client.post(URL, json=_signup_payload(), headers=_secret_headers())
        second = await async_client.post(URL, json=_signup_payload(), headers=_secret_headers())

        assert second.status_code == status.HTTP_200_OK
        assert second.json()["created"] is False
        assert second.json()["profile_id"] == first.json()["profile_id"]

        result = await async_session.execute(
            select(Profile).where(Profile.auth_user_id == "auth-user-1")
        )
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_other_events_ignored(self, async_client: AsyncClient):
        payload = _signup_payload()
        payload["type"] = "UPDATE"

        response = await async_client.post(URL, json=payload, headers=_secret_headers())

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "Event processed"
        assert response.json()["profile_id"] is None

    @pytest.mark.asyncio
    async def test_invalid_secret_rejected(self, async_client: AsyncClient):
        response = await async_client.post(
            URL, json=_signup_payload(), headers=_secret_headers("wrong-secret")
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_missing_secret_rejected(self, async_client: AsyncClient):
        response = await async_client.post(URL, json=_signup_payload())

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_record_without_email(self, async_client: AsyncClient):
        payload = _signup_payload()
        payload["record"]["email"] = None

        response = await async_client.post(URL, json=payload, headers=_secret_headers())

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_new_profile_can_authenticate(self, async_client: AsyncClient):
        _ = await async_client.post(URL, json=_signup_payload(), headers=_secret_headers())
        token = create_access_token({"sub": "auth-user-1"})

        response = await async_client.get(
            "/api/profiles/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["role"] == ProfileRole.USER.value
