"""Recruitment participation lifecycle tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.models import Conversation, ConversationParticipant, Notification, Recruitment, RecruitmentParticipant
from fitpeak.errors import ConflictError, InvalidArgument, PermissionDenied
from fitpeak.messaging.conversations import get_or_create_conversation
from fitpeak.recruitment import service
from fitpeak.social import notification_service
from fitpeak.social.notification_fanout import NotificationFanOut
from fitpeak.social.safety_service import block_user
from tests.conftest import auth_headers


def _event_date(days: int = 3) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


async def _notifications(db: AsyncSession, user_id: str) -> list[Notification]:
    result = await db.execute(select(Notification).where(Notification.user_id == user_id).order_by(Notification.id))
    return list(result.scalars().all())


async def _room_members(db: AsyncSession, room_id: str) -> set[str]:
    result = await db.execute(
        select(ConversationParticipant.user_id).where(ConversationParticipant.conversation_id == room_id)
    )
    return set(result.scalars().all())


@pytest.fixture
def post_factory(db: AsyncSession):
    async def _post(owner_id: str, title: str = "Leg day at Gold's", **fields) -> Recruitment:
        recruitment = await service.create_recruitment(db, owner_id, title, _event_date(), **fields)
        await db.commit()
        return recruitment

    return _post


class TestApply:
    @pytest.mark.asyncio
    async def test_apply_notifies_owner(
        self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory, email_provider: AsyncMock
    ) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id)

        outcome = await service.apply(db, alice.id, post.id, fanout)

        assert outcome.result.status == "pending"
        assert outcome.degraded is False
        [notification] = await _notifications(db, owner.id)
        assert notification.type == "apply"
        assert notification.content == "Aliceさんから応募がありました"
        assert email_provider.send.await_args.args[1] == "【FITPEAK】合トレに参加申請が届きました"

    @pytest.mark.asyncio
    async def test_cannot_apply_to_own_post(self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory) -> None:
        owner = await make_user("Owner")
        post = await post_factory(owner.id)
        with pytest.raises(InvalidArgument):
            await service.apply(db, owner.id, post.id, fanout)

    @pytest.mark.asyncio
    async def test_cannot_apply_twice(self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id)
        await service.apply(db, alice.id, post.id, fanout)
        with pytest.raises(ConflictError, match="既に応募しています"):
            await service.apply(db, alice.id, post.id, fanout)

    @pytest.mark.asyncio
    async def test_closed_post_rejects_applications(
        self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory
    ) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id)
        await service.update_recruitment(db, owner.id, post.id, {"status": "closed"})
        with pytest.raises(InvalidArgument, match="この募集は締め切られています"):
            await service.apply(db, alice.id, post.id, fanout)

    @pytest.mark.asyncio
    async def test_apply_survives_unreachable_owner(
        self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory
    ) -> None:
        owner = await make_user("Owner", email=None)
        alice = await make_user("Alice")
        post = await post_factory(owner.id)
        outcome = await service.apply(db, alice.id, post.id, fanout)
        assert outcome.warnings == ["recruitment_apply_notification_failed"]
        assert outcome.result.status == "pending"


class TestDecisions:
    @pytest.mark.asyncio
    async def test_approve_joins_room_and_notifies(
        self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory, email_provider: AsyncMock
    ) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id, title="Bench night")
        await service.apply(db, alice.id, post.id, fanout)

        outcome = await service.approve(db, owner.id, post.id, alice.id, fanout)

        assert outcome.result.status == "approved"
        assert await _room_members(db, post.chat_room_id) == {owner.id, alice.id}
        [notification] = await _notifications(db, alice.id)
        assert notification.type == "approve"
        assert notification.content == "「Bench night」への参加が承認されました"
        assert email_provider.send.await_args.args[1] == "【FITPEAK】「Bench night」への参加が承認されました"
        assert await service.count_approved(db, post.id) == 1

    @pytest.mark.asyncio
    async def test_only_owner_decides(self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id)
        await service.apply(db, alice.id, post.id, fanout)
        with pytest.raises(PermissionDenied):
            await service.approve(db, alice.id, post.id, alice.id, fanout)
        with pytest.raises(PermissionDenied):
            await service.reject(db, alice.id, post.id, alice.id)

    @pytest.mark.asyncio
    async def test_reject_is_silent_and_final(
        self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory
    ) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id)
        await service.apply(db, alice.id, post.id, fanout)

        participation = await service.reject(db, owner.id, post.id, alice.id)

        assert participation.status == "rejected"
        assert await _notifications(db, alice.id) == []
        with pytest.raises(InvalidArgument):
            await service.approve(db, owner.id, post.id, alice.id, fanout)

    @pytest.mark.asyncio
    async def test_withdraw_leaves_room(self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id)
        await service.apply(db, alice.id, post.id, fanout)
        await service.approve(db, owner.id, post.id, alice.id, fanout)

        outcome = await service.withdraw(db, alice.id, post.id)

        assert outcome.result.status == "withdrawn"
        assert await _room_members(db, post.chat_room_id) == {owner.id}
        types = [n.type for n in await _notifications(db, owner.id)]
        assert types == ["apply", "cancel"]

    @pytest.mark.asyncio
    async def test_pending_cannot_withdraw(self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id)
        await service.apply(db, alice.id, post.id, fanout)
        with pytest.raises(InvalidArgument):
            await service.withdraw(db, alice.id, post.id)


class TestDeleteRecruitment:
    @pytest.mark.asyncio
    async def test_delete_notifies_every_active_participant(
        self, client: AsyncClient, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory
    ) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        carol = await make_user("Carol")
        post = await post_factory(owner.id, title="Deadlift PR day")
        for user in (alice, bob, carol):
            await service.apply(db, user.id, post.id, fanout)
        await service.reject(db, owner.id, post.id, carol.id)
        await db.commit()

        response = await client.delete(f"/api/v1/recruitments/{post.id}", headers=auth_headers(owner.id))
        assert response.status_code == 200

        for user in (alice, bob):
            [notification] = await _notifications(db, user.id)
            assert notification.type == "cancel"
            assert notification.content == "「Deadlift PR day」の募集が中止されました"
            assert notification.link == "/dashboard/recruit"
        assert await _notifications(db, carol.id) == []

        assert (await db.execute(select(Recruitment).where(Recruitment.id == post.id))).scalar_one_or_none() is None
        remaining = await db.execute(
            select(RecruitmentParticipant).where(RecruitmentParticipant.recruitment_id == post.id)
        )
        assert remaining.scalars().all() == []

    @pytest.mark.asyncio
    async def test_delete_survives_a_failed_notification(
        self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory, monkeypatch
    ) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        post = await post_factory(owner.id)
        for user in (alice, bob):
            await service.apply(db, user.id, post.id, fanout)
        await service.approve(db, owner.id, post.id, alice.id, fanout)

        real_create = notification_service.create_notification

        async def failing_for_bob(session, user_id, type_, content, **kwargs):
            if user_id == bob.id:
                raise SQLAlchemyError("insert failed")
            return await real_create(session, user_id, type_, content, **kwargs)

        monkeypatch.setattr(notification_service, "create_notification", failing_for_bob)

        outcome = await service.delete_recruitment(db, owner.id, post.id)

        assert outcome.warnings == [f"notification:cancel:{bob.id}"]
        assert [n.type for n in await _notifications(db, alice.id)] == ["approve", "cancel"]
        assert await _notifications(db, bob.id) == []
        assert await db.get(Recruitment, post.id) is None

    @pytest.mark.asyncio
    async def test_delete_removes_chat_room(
        self, db: AsyncSession, fanout: NotificationFanOut, make_user, post_factory
    ) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id)
        room_id = post.chat_room_id
        await service.apply(db, alice.id, post.id, fanout)
        await service.approve(db, owner.id, post.id, alice.id, fanout)

        await service.delete_recruitment(db, owner.id, post.id)

        assert (await db.execute(select(Conversation.id).where(Conversation.id == room_id))).first() is None
        assert await _room_members(db, room_id) == set()
        assert await get_or_create_conversation(db, owner.id, alice.id) != room_id

    @pytest.mark.asyncio
    async def test_only_owner_deletes(self, client: AsyncClient, make_user, post_factory) -> None:
        owner = await make_user("Owner")
        alice = await make_user("Alice")
        post = await post_factory(owner.id)
        response = await client.delete(f"/api/v1/recruitments/{post.id}", headers=auth_headers(alice.id))
        assert response.status_code == 403


class TestListing:
    @pytest.mark.asyncio
    async def test_list_filters_and_sorts(self, db: AsyncSession, make_user) -> None:
        owner = await make_user("Owner")
        near = await service.create_recruitment(db, owner.id, "near", _event_date(1), target_body_part="legs")
        far = await service.create_recruitment(db, owner.id, "far", _event_date(9), target_body_part="legs")
        await service.create_recruitment(db, owner.id, "chest", _event_date(5), target_body_part="chest")
        await db.commit()

        rows = await service.list_open_recruitments(db, body_part="legs", sort="date_nearest")
        assert [r.id for r, _ in rows] == [near.id, far.id]
        rows = await service.list_open_recruitments(db, body_part="all", sort="date_furthest")
        assert [r.title for r, _ in rows] == ["far", "chest", "near"]

    @pytest.mark.asyncio
    async def test_invalid_body_part_rejected(self, db: AsyncSession, make_user) -> None:
        owner = await make_user("Owner")
        with pytest.raises(InvalidArgument):
            await service.create_recruitment(db, owner.id, "x", _event_date(), target_body_part="neck")

    @pytest.mark.asyncio
    async def test_http_listing_normalizes_tags(self, client: AsyncClient, make_user) -> None:
        owner = await make_user("Owner")
        created = await client.post(
            "/api/v1/recruitments",
            json={"title": "Back day", "event_date": _event_date().isoformat(), "target_body_part": "back"},
            headers=auth_headers(owner.id),
        )
        assert created.status_code == 201

        response = await client.get("/api/v1/recruitments")
        [item] = response.json()["recruitments"]
        assert item["title"] == "Back day"
        assert item["tags"] == ["back"]


class TestRecommendations:
    @pytest.mark.asyncio
    async def test_matches_prefecture_or_trained_body_part(self, db: AsyncSession, make_user) -> None:
        me = await make_user("Me", prefecture="東京都", exercises=["legs"])
        owner = await make_user("Owner")
        in_tokyo = await service.create_recruitment(
            db, owner.id, "Shibuya session", _event_date(), target_body_part="chest", location="東京 渋谷"
        )
        leg_day = await service.create_recruitment(
            db, owner.id, "Osaka legs", _event_date(), target_body_part="legs", location="大阪"
        )
        await service.create_recruitment(
            db, owner.id, "Osaka chest", _event_date(), target_body_part="chest", location="大阪"
        )
        closed = await service.create_recruitment(
            db, owner.id, "Closed legs", _event_date(), target_body_part="legs", location="東京都"
        )
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        in_tokyo.created_at = base
        leg_day.created_at = base + timedelta(hours=1)
        closed.status = "closed"
        await db.commit()

        rows = await service.recommended_recruitments(db, me.id)
        assert [r.id for r, _ in rows] == [leg_day.id, in_tokyo.id]

    @pytest.mark.asyncio
    async def test_without_preferences_returns_open_posts(self, db: AsyncSession, make_user) -> None:
        me = await make_user("Me")
        owner = await make_user("Owner")
        await service.create_recruitment(db, owner.id, "anything", _event_date(), location="大阪")
        await db.commit()

        rows = await service.recommended_recruitments(db, me.id)
        assert [r.title for r, _ in rows] == ["anything"]

    @pytest.mark.asyncio
    async def test_http_recommended_hides_blocked_owners(
        self, client: AsyncClient, db: AsyncSession, make_user
    ) -> None:
        me = await make_user("Me", exercises=["back"])
        friend = await make_user("Friend")
        blocked = await make_user("Blocked")
        await service.create_recruitment(db, friend.id, "Back with friend", _event_date(), target_body_part="back")
        await service.create_recruitment(db, blocked.id, "Back with blocked", _event_date(), target_body_part="back")
        await block_user(db, me.id, blocked.id)
        await db.commit()

        response = await client.get("/api/v1/recruitments/recommended", headers=auth_headers(me.id))
        assert response.status_code == 200
        assert [item["title"] for item in response.json()["recruitments"]] == ["Back with friend"]

    @pytest.mark.asyncio
    async def test_http_recommended_requires_login(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/recruitments/recommended")
        assert response.status_code == 401
