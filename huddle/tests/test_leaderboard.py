import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient
from fastapi import status
from sqlalchemy import select

from huddle.models import ActivityStatus, Notification, NotificationType
from huddle.services.leaderboard_service import LeaderboardService

from .test_utils import add_participation, auth_headers, make_activity, make_profile


async def _completed_activity(session, title: str = "Team lunch", days_ago: int = 1):
    return await make_activity(
        session,
        status=ActivityStatus.COMPLETED,
        scheduled_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
        title=title,
    )


class TestSetRank:

    @pytest.mark.asyncio
    async def test_rank_lifecycle(
        self, async_client: AsyncClient, async_session, admin_user, test_user
    ):
        headers = auth_headers(admin_user)
        user_id = test_user.id
        activity = await _completed_activity(async_session)
        activity_id = activity.id
        await add_participation(async_session, activity, test_user)
        url = f"/api/leaderboard/{activity_id}/{user_id}"

        response = await async_client.put(url, json={"rank": 2}, headers=headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "activity_id": activity_id,
            "user_id": user_id,
            "rank": 2,
            "action": "created",
        }

        response = await async_client.put(url, json={"rank": 1}, headers=headers)
        assert response.json()["action"] == "updated"
        assert response.json()["rank"] == 1

        response = await async_client.put(url, json={"rank": None}, headers=headers)
        assert response.json()["action"] == "deleted"

        response = await async_client.put(url, json={}, headers=headers)
        assert response.json()["action"] == "noop"

    @pytest.mark.asyncio
    async def test_ranked_user_is_notified(self, async_session, admin_user, test_user):
        user_id = test_user.id
        activity = await _completed_activity(async_session, title="Go-karting")
        await add_participation(async_session, activity, test_user)

        await LeaderboardService(async_session).set_rank(
            activity.id, user_id, rank=1, marker_id=admin_user.id
        )

        result = await async_session.execute(
            select(Notification).where(
                Notification.user_id == user_id,
                Notification.type == NotificationType.LEADERBOARD_MARKED,
            )
        )
        notification = result.scalar_one()
        assert notification.message == "You ranked #1 in Go-karting!"
        assert notification.reference_id == activity.id

    @pytest.mark.asyncio
    async def test_activity_must_be_completed(
        self, async_client: AsyncClient, async_session, admin_user, test_user
    ):
        activity = await make_activity(async_session)
        await add_participation(async_session, activity, test_user)

        response = await async_client.put(
            f"/api/leaderboard/{activity.id}/{test_user.id}",
            json={"rank": 1},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "ActivityStateError"

    @pytest.mark.asyncio
    async def test_only_accepted_participants_ranked(
        self, async_client: AsyncClient, async_session, admin_user, test_user
    ):
        activity = await _completed_activity(async_session)

        response = await async_client.put(
            f"/api/leaderboard/{activity.id}/{test_user.id}",
            json={"rank": 1},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "NotParticipantError"

    @pytest.mark.asyncio
    async def test_rank_must_be_positive(
        self, async_client: AsyncClient, async_session, admin_user, test_user
    ):
        activity = await _completed_activity(async_session)

        response = await async_client.put(
            f"/api/leaderboard/{activity.id}/{test_user.id}",
            json={"rank": 0},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_admin(self, async_client: AsyncClient, async_session, test_user):
        activity = await _completed_activity(async_session)

        response = await async_client.put(
            f"/api/leaderboard/{activity.id}/{test_user.id}",
            json={"rank": 1},
            headers=auth_headers(test_user),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_unknown_activity(self, async_client: AsyncClient, admin_user, test_user):
        response = await async_client.put(
            f"/api/leaderboard/999/{test_user.id}",
            json={"rank": 1},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestLeaderboardViews:

    @pytest.mark.asyncio
    async def test_activity_board_orders_ranked_first(
        self, async_client: AsyncClient, async_session, admin_user
    ):
        admin_id = admin_user.id
        activity = await _completed_activity(async_session)
        activity_id = activity.id
        unranked = await make_profile(async_session, "unranked")
        second = await make_profile(async_session, "second")
        first = await make_profile(async_session, "first")
        unranked_id, second_id, first_id = unranked.id, second.id, first.id
        for profile in (unranked, second, first):
            await add_participation(async_session, activity, profile)

        service = LeaderboardService(async_session)
        await service.set_rank(activity_id, second_id, rank=2, marker_id=admin_id)
        await service.set_rank(activity_id, first_id, rank=1, marker_id=admin_id)

        response = await async_client.get(
            f"/api/leaderboard/{activity_id}", headers=auth_headers(admin_user)
        )

        assert response.status_code == status.HTTP_200_OK
        entries = response.json()["entries"]
        assert [entry["user"]["id"] for entry in entries] == [first_id, second_id, unranked_id]
        assert [entry["rank"] for entry in entries] == [1, 2, None]
        assert entries[0]["marked_by_id"] == admin_id

    @pytest.mark.asyncio
    async def test_boards_list_completed_activities(
        self, async_client: AsyncClient, async_session, test_user
    ):
        await _completed_activity(async_session, title="Older", days_ago=5)
        await _completed_activity(async_session, title="Newer", days_ago=1)
        await make_activity(async_session, title="Still upcoming")

        response = await async_client.get("/api/leaderboard/", headers=auth_headers(test_user))

        assert response.status_code == status.HTTP_200_OK
        assert [board["title"] for board in response.json()] == ["Newer", "Older"]

    @pytest.mark.asyncio
    async def test_standings(self, async_client: AsyncClient, async_session, admin_user):
        admin_id = admin_user.id
        alice = await make_profile(async_session, "alice")
        bob = await make_profile(async_session, "bob")
        alice_id, bob_id = alice.id, bob.id
        service = LeaderboardService(async_session)

        for title, alice_rank, bob_rank in (("Bowling", 1, 2), ("Quiz", 3, 1), ("Darts", 1, 4)):
            activity = await _completed_activity(async_session, title=title)
            activity_id = activity.id
            await add_participation(async_session, activity, alice)
            await add_participation(async_session, activity, bob)
            await service.set_rank(activity_id, alice_id, rank=alice_rank, marker_id=admin_id)
            await service.set_rank(activity_id, bob_id, rank=bob_rank, marker_id=admin_id)

        response = await async_client.get(
            "/api/leaderboard/standings", headers=auth_headers(admin_user)
        )

        assert response.status_code == status.HTTP_200_OK
        standings = response.json()
        assert [s["user"]["id"] for s in standings] == [alice_id, bob_id]
        assert standings[0] == {
            "user": standings[0]["user"],
            "ranked_finishes": 3,
            "podium_finishes": 3,
            "first_places": 2,
            "best_rank": 1,
        }
        assert standings[1]["podium_finishes"] == 2
        assert standings[1]["first_places"] == 1

    @pytest.mark.asyncio
    async def test_standings_tie_breaks(self, async_session, admin_user):
        admin_id = admin_user.id
        carol = await make_profile(async_session, "carol")
        dave = await make_profile(async_session, "dave")
        erin = await make_profile(async_session, "erin")
        carol_id, dave_id, erin_id = carol.id, dave.id, erin.id
        service = LeaderboardService(async_session)

        ranks = {"Trivia": {carol_id: 5, dave_id: 4, erin_id: 7}, "Chess": {carol_id: 6}}
        for title, by_user in ranks.items():
            activity = await _completed_activity(async_session, title=title)
            activity_id = activity.id
            for profile in (carol, dave, erin):
                await add_participation(async_session, activity, profile)
            for user_id, rank in by_user.items():
                await service.set_rank(activity_id, user_id, rank=rank, marker_id=admin_id)

        standings = await service.get_standings()

        # No podiums, so more ranked finishes wins, then the better best rank
        assert [s["user"].id for s in standings] == [carol_id, dave_id, erin_id]
        assert [s["podium_finishes"] for s in standings] == [0, 0, 0]
        assert [s["ranked_finishes"] for s in standings] == [2, 1, 1]
        assert [s["best_rank"] for s in standings] == [5, 4, 7]
