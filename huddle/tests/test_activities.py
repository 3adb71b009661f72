import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient
from fastapi import status
from sqlalchemy import func, select

from huddle.models import (
    ActivityParticipation,
    ActivityStatus,
    Notification,
    NotificationType,
    ParticipationStatus,
    Poll,
    PollStatus,
)
from huddle.services.participation_service import ParticipationService

from .test_utils import add_participation, auth_headers, make_activity, make_poll


def _past(hours: int = 2) -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=hours)


def _future(days: int = 2) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


class TestCreateActivity:

    @pytest.mark.asyncio
    async def test_admin_creates_and_announces(
        self, async_client: AsyncClient, async_session, admin_user, test_user, second_user
    ):
        admin_id = admin_user.id
        member_ids = {test_user.id, second_user.id}
        payload = {
            "title": "Climbing session",
            "location": "Boulder gym",
            "scheduled_at": _future().isoformat(),
        }

        response = await async_client.post(
            "/api/activities/", json=payload, headers=auth_headers(admin_user)
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["title"] == "Climbing session"
        assert data["status"] == "upcoming"
        assert data["display_status"] == "upcoming"
        assert data["created_by_id"] == admin_id
        assert data["accepted_count"] == 0

        result = await async_session.execute(
            select(Notification).where(
                Notification.type == NotificationType.ACTIVITY_CREATED,
                Notification.reference_id == data["id"],
            )
        )
        notifications = result.scalars().all()
        assert {n.user_id for n in notifications} == member_ids
        assert notifications[0].message == "Climbing session has been scheduled!"

    @pytest.mark.asyncio
    async def test_member_cannot_create(self, async_client: AsyncClient, test_user):
        response = await async_client.post(
            "/api/activities/", json={"title": "Karaoke"}, headers=auth_headers(test_user)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_second_activity_for_poll_conflicts(
        self, async_client: AsyncClient, async_session, admin_user
    ):
        headers = auth_headers(admin_user)
        poll = await make_poll(async_session, admin_user)
        payload = {"title": "From poll", "poll_id": poll.id}

        first = await async_client.post("/api/activities/", json=payload, headers=headers)
        second = await async_client.post("/api/activities/", json=payload, headers=headers)

        assert first.status_code == status.HTTP_201_CREATED
        assert second.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.asyncio
    async def test_unknown_poll_reference(self, async_client: AsyncClient, admin_user):
        response = await async_client.post(
            "/api/activities/",
            json={"title": "Orphan", "poll_id": 999},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


    @pytest.mark.asyncio
    async def test_create_from_poll_option_closes_poll(
        self, async_client: AsyncClient, async_session, admin_user, test_user
    ):
        headers = auth_headers(admin_user)
        poll = await make_poll(
            async_session, admin_user, event_date="2026-01-17", event_time="19:15:00"
        )
        poll_id = poll.id
        yes_option = poll.options[0]
        yes_option.description = "Lane 4 is reserved"
        await async_session.commit()
        option_id = yes_option.id

        response = await async_client.post(
            "/api/activities/from-poll",
            json={"poll_id": poll_id, "option_id": option_id},
            headers=headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["title"] == "Team bowling night"
        assert data["description"] == (
            "Bowling after work\n\nWinning option: Yes\n\nLane 4 is reserved"
        )
        assert datetime.fromisoformat(data["scheduled_at"].replace("Z", "+00:00")) == (
            datetime(2026, 1, 17, 19, 15, tzinfo=timezone.utc)
        )
        assert data["poll_id"] == poll_id
        assert data["poll_option_id"] == option_id

        result = await async_session.execute(
            select(Poll).where(Poll.id == poll_id).execution_options(populate_existing=True)
        )
        assert result.scalar_one().status == PollStatus.CLOSED

        response = await async_client.post(
            f"/api/polls/{poll_id}/vote",
            json={"option_id": option_id},
            headers=auth_headers(test_user),
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = await async_client.post(
            "/api/activities/from-poll",
            json={"poll_id": poll_id, "option_id": option_id},
            headers=headers,
        )
        assert response.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.asyncio
    async def test_create_from_poll_rejects_foreign_option(
        self, async_client: AsyncClient, async_session, admin_user
    ):
        headers = auth_headers(admin_user)
        poll = await make_poll(async_session, admin_user)
        other = await make_poll(async_session, admin_user, title="Other poll")
        poll_id = poll.id

        response = await async_client.post(
            "/api/activities/from-poll",
            json={"poll_id": poll_id, "option_id": other.options[0].id},
            headers=headers,
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        result = await async_session.execute(
            select(Poll).where(Poll.id == poll_id).execution_options(populate_existing=True)
        )
        assert result.scalar_one().status == PollStatus.ACTIVE


class TestActivityLifecycle:

    @pytest.mark.asyncio
    async def test_past_upcoming_activity_displays_ongoing(
        self, async_client: AsyncClient, async_session, test_user
    ):
        await make_activity(async_session, scheduled_at=_past(), title="Started")
        await make_activity(async_session, scheduled_at=_future(), title="Later")
        await make_activity(async_session, title="Unscheduled")

        response = await async_client.get("/api/activities/", headers=auth_headers(test_user))

        assert response.status_code == status.HTTP_200_OK
        activities = response.json()
        assert [a["title"] for a in activities] == ["Started", "Later", "Unscheduled"]
        assert [a["display_status"] for a in activities] == ["ongoing", "upcoming", "upcoming"]
        assert all(a["status"] == "upcoming" for a in activities)

    @pytest.mark.asyncio
    async def test_complete_activity(
        self, async_client: AsyncClient, async_session, admin_user
    ):
        headers = auth_headers(admin_user)
        activity = await make_activity(async_session, scheduled_at=_past())

        response = await async_client.post(
            f"/api/activities/{activity.id}/complete", headers=headers
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "completed"

        response = await async_client.post(
            f"/api/activities/{activity.id}/complete", headers=headers
        )
        assert response.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_cannot_complete_future_activity(
        self, async_client: AsyncClient, async_session, admin_user
    ):
        headers = auth_headers(admin_user)
        activity = await make_activity(async_session, scheduled_at=_future())

        response = await async_client.post(
            f"/api/activities/{activity.id}/complete", headers=headers
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "ActivityStateError"

        response = await async_client.patch(
            f"/api/activities/{activity.id}", json={"status": "completed"}, headers=headers
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_cannot_complete_cancelled_activity(
        self, async_client: AsyncClient, async_session, admin_user
    ):
        activity = await make_activity(
            async_session, status=ActivityStatus.CANCELLED, scheduled_at=_past()
        )

        response = await async_client.post(
            f"/api/activities/{activity.id}/complete", headers=auth_headers(admin_user)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_update_activity(
        self, async_client: AsyncClient, async_session, admin_user
    ):
        activity = await make_activity(async_session, scheduled_at=_future())

        response = await async_client.patch(
            f"/api/activities/{activity.id}",
            json={"title": "Team dinner", "location": "Harbour", "status": "cancelled"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["title"] == "Team dinner"
        assert data["location"] == "Harbour"
        assert data["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_delete_activity(
        self, async_client: AsyncClient, async_session, admin_user, test_user
    ):
        activity = await make_activity(async_session)
        activity_id = activity.id
        await add_participation(async_session, activity, test_user)

        response = await async_client.delete(
            f"/api/activities/{activity_id}", headers=auth_headers(admin_user)
        )
        assert response.status_code == status.HTTP_204_NO_CONTENT

        response = await async_client.get(
            f"/api/activities/{activity_id}", headers=auth_headers(test_user)
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestParticipation:

    @pytest.mark.asyncio
    async def test_accept_notifies_creator(
        self, async_client: AsyncClient, async_session, admin_user, test_user
    ):
        admin_id = admin_user.id
        user_id = test_user.id
        responder_name = test_user.display_name
        activity = await make_activity(async_session, admin_user, scheduled_at=_future())

        response = await async_client.post(
            f"/api/activities/{activity.id}/respond",
            json={"status": "accepted", "reason": "ignored"},
            headers=auth_headers(test_user),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "accepted"
        assert data["rejection_reason"] is None
        assert data["user_id"] == user_id
        assert data["user"]["id"] == user_id

        result = await async_session.execute(
            select(Notification).where(
                Notification.user_id == admin_id,
                Notification.type == NotificationType.PARTICIPATION_RESPONSE,
            )
        )
        notification = result.scalar_one()
        assert notification.message == (
            f"{responder_name} accepted participation in Team lunch"
        )

    @pytest.mark.asyncio
    async def test_reject_requires_reason(
        self, async_client: AsyncClient, async_session, test_user
    ):
        activity = await make_activity(async_session)

        response = await async_client.post(
            f"/api/activities/{activity.id}/respond",
            json={"status": "rejected"},
            headers=auth_headers(test_user),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "RejectionReasonRequiredError"

    @pytest.mark.asyncio
    async def test_response_is_upserted(
        self, async_client: AsyncClient, async_session, test_user
    ):
        headers = auth_headers(test_user)
        user_id = test_user.id
        activity = await make_activity(async_session)
        activity_id = activity.id

        response = await async_client.post(
            f"/api/activities/{activity_id}/respond",
            json={"status": "rejected", "reason": "On holiday"},
            headers=headers,
        )
        assert response.json()["rejection_reason"] == "On holiday"

        response = await async_client.post(
            f"/api/activities/{activity_id}/respond",
            json={"status": "accepted"},
            headers=headers,
        )
        assert response.json()["status"] == "accepted"
        assert response.json()["rejection_reason"] is None

        count = await async_session.execute(
            select(func.count(ActivityParticipation.id)).where(
                ActivityParticipation.activity_id == activity_id,
                ActivityParticipation.user_id == user_id,
            )
        )
        assert count.scalar() == 1

    @pytest.mark.asyncio
    async def test_creator_response_not_notified(
        self, async_client: AsyncClient, async_session, admin_user
    ):
        admin_id = admin_user.id
        activity = await make_activity(async_session, admin_user)

        response = await async_client.post(
            f"/api/activities/{activity.id}/respond",
            json={"status": "accepted"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == status.HTTP_200_OK

        count = await async_session.execute(
            select(func.count(Notification.id)).where(Notification.user_id == admin_id)
        )
        assert count.scalar() == 0

    @pytest.mark.asyncio
    async def test_cannot_respond_to_completed_activity(
        self, async_client: AsyncClient, async_session, test_user
    ):
        activity = await make_activity(async_session, status=ActivityStatus.COMPLETED)

        response = await async_client.post(
            f"/api/activities/{activity.id}/respond",
            json={"status": "accepted"},
            headers=auth_headers(test_user),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_respond_to_nonexistent_activity(self, async_client: AsyncClient, test_user):
        response = await async_client.post(
            "/api/activities/999/respond",
            json={"status": "accepted"},
            headers=auth_headers(test_user),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_counts_and_participants(
        self, async_client: AsyncClient, async_session, test_user, second_user
    ):
        headers = auth_headers(test_user)
        user_id = test_user.id
        activity = await make_activity(async_session)
        activity_id = activity.id
        await add_participation(async_session, activity, test_user)
        await add_participation(
            async_session, activity, second_user, status=ParticipationStatus.REJECTED
        )

        response = await async_client.get("/api/activities/", headers=headers)
        listed = response.json()[0]
        assert listed["accepted_count"] == 1
        assert listed["user_response"] == "accepted"

        response = await async_client.get(f"/api/activities/{activity_id}", headers=headers)
        detail = response.json()
        assert detail["accepted_count"] == 1
        assert len(detail["participants"]) == 2

        response = await async_client.get(
            f"/api/activities/{activity_id}/participants",
            params={"status": "accepted"},
            headers=headers,
        )
        assert [p["user_id"] for p in response.json()] == [user_id]

    @pytest.mark.asyncio
    async def test_participation_queries(self, async_session, test_user, second_user):
        activity = await make_activity(async_session)
        await add_participation(async_session, activity, test_user)
        await add_participation(
            async_session, activity, second_user, status=ParticipationStatus.PENDING
        )

        service = ParticipationService(async_session)

        assert await service.accepted_count(activity.id) == 1
        response = await service.get_user_response(activity.id, second_user.id)
        assert response.status == ParticipationStatus.PENDING
        assert await service.get_user_response(activity.id, 999) is None
