"""Conversation resolver, messaging and unread-count tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.models import Conversation, Notification
from fitpeak.errors import InvalidArgument, PermissionDenied
from fitpeak.groups.service import create_group, delete_group, join_group
from fitpeak.messaging.conversations import create_conversation, get_or_create_conversation
from fitpeak.messaging.service import send_message, unread_count
from fitpeak.social.notification_fanout import NotificationFanOut
from fitpeak.social.safety_service import block_user
from tests.conftest import APP_URL, auth_headers


class TestGetOrCreateConversation:
    @pytest.mark.asyncio
    async def test_reuses_existing_room(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")

        first = await get_or_create_conversation(db, alice.id, bob.id)
        second = await get_or_create_conversation(db, bob.id, alice.id)

        assert first == second
        rooms = (await db.execute(select(Conversation))).scalars().all()
        assert len(rooms) == 1

    @pytest.mark.asyncio
    async def test_self_conversation_rejected(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        with pytest.raises(InvalidArgument):
            await get_or_create_conversation(db, alice.id, alice.id)

    @pytest.mark.asyncio
    async def test_group_room_is_not_a_direct_room(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        group = await create_group(db, alice.id, "Morning lifters")
        await join_group(db, bob.id, group.id)

        conversation_id = await get_or_create_conversation(db, alice.id, bob.id)

        assert conversation_id != group.chat_room_id

    @pytest.mark.asyncio
    async def test_deleted_group_room_is_not_reused(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        carol = await make_user("Carol")
        group = await create_group(db, alice.id, "Evening lifters")
        await join_group(db, bob.id, group.id)
        await join_group(db, carol.id, group.id)
        room_id = group.chat_room_id

        await delete_group(db, alice.id, group.id)

        assert (await db.execute(select(Conversation.id).where(Conversation.id == room_id))).first() is None
        direct = await get_or_create_conversation(db, alice.id, bob.id)
        assert direct != room_id
        assert (await db.get(Conversation, direct)).kind == "direct"

    @pytest.mark.asyncio
    async def test_bound_room_kind_excluded_without_owner_reference(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        orphan = await create_conversation(db, alice.id, bob.id, kind="recruitment")

        conversation_id = await get_or_create_conversation(db, alice.id, bob.id)

        assert conversation_id != orphan.id

    @pytest.mark.asyncio
    async def test_first_of_duplicate_rooms_wins(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        one = await create_conversation(db, alice.id, bob.id)
        two = await create_conversation(db, alice.id, bob.id)

        conversation_id = await get_or_create_conversation(db, alice.id, bob.id)

        assert conversation_id in {one.id, two.id}
        assert len((await db.execute(select(Conversation))).scalars().all()) == 2

    @pytest.mark.asyncio
    async def test_open_direct_over_http(self, client: AsyncClient, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        first = await client.post(f"/api/v1/conversations/direct/{bob.id}", headers=auth_headers(alice.id))
        second = await client.post(f"/api/v1/conversations/direct/{alice.id}", headers=auth_headers(bob.id))
        assert first.status_code == 200
        assert first.json() == second.json()

        anonymous = await client.post(f"/api/v1/conversations/direct/{bob.id}")
        assert anonymous.status_code == 401


class TestMessaging:
    @pytest.mark.asyncio
    async def test_send_notifies_recipient(
        self,
        db: AsyncSession,
        fanout: NotificationFanOut,
        make_user,
        email_provider: AsyncMock,
        push_client: MagicMock,
    ) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob", line_user_id="U-bob")
        room = await get_or_create_conversation(db, alice.id, bob.id)

        outcome = await send_message(db, alice.id, room, "  squat at 7?  ", fanout)

        assert outcome.result.content == "squat at 7?"
        notification = (await db.execute(select(Notification).where(Notification.user_id == bob.id))).scalar_one()
        assert notification.type == "message"
        assert notification.content == "新着メッセージがあります"
        assert notification.link == f"/dashboard/messages/{room}"
        assert email_provider.send.await_count == 1
        push_client.push_text.assert_awaited_once_with(
            "U-bob",
            "【FITPEAK】Aliceさんからメッセージが届きました。",
            f"{APP_URL}/dashboard/messages/{room}",
        )

    @pytest.mark.asyncio
    async def test_group_message_names_the_group(
        self, db: AsyncSession, fanout: NotificationFanOut, make_user, email_provider: AsyncMock
    ) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        carol = await make_user("Carol")
        group = await create_group(db, alice.id, "Leg Day")
        await join_group(db, bob.id, group.id)
        await join_group(db, carol.id, group.id)

        await send_message(db, alice.id, group.chat_room_id, "see you at 6", fanout)

        notifications = (await db.execute(select(Notification))).scalars().all()
        assert {n.user_id for n in notifications} == {bob.id, carol.id}
        assert {n.content for n in notifications} == {"Aliceさんが「Leg Day」でメッセージを送信しました"}
        subjects = {call.args[1] for call in email_provider.send.await_args_list}
        assert subjects == {"【FITPEAK】グループ「Leg Day」で新しいメッセージが届きました"}

    @pytest.mark.asyncio
    async def test_outsider_cannot_send(self, db: AsyncSession, fanout: NotificationFanOut, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        eve = await make_user("Eve")
        room = await get_or_create_conversation(db, alice.id, bob.id)
        with pytest.raises(PermissionDenied):
            await send_message(db, eve.id, room, "hi", fanout)

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, db: AsyncSession, fanout: NotificationFanOut, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        room = await get_or_create_conversation(db, alice.id, bob.id)
        with pytest.raises(InvalidArgument):
            await send_message(db, alice.id, room, "   ", fanout)


class TestUnread:
    @pytest.mark.asyncio
    async def test_unread_follows_read_watermark(self, client: AsyncClient, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        room = await get_or_create_conversation(db, alice.id, bob.id)
        await db.commit()

        for text in ("one", "two"):
            response = await client.post(
                f"/api/v1/conversations/{room}/messages", json={"content": text}, headers=auth_headers(alice.id)
            )
            assert response.status_code == 201

        unread = await client.get("/api/v1/conversations/unread-count", headers=auth_headers(bob.id))
        assert unread.json() == {"unread_count": 2}
        assert await unread_count(db, alice.id) == 0

        await client.post(f"/api/v1/conversations/{room}/read", headers=auth_headers(bob.id))
        assert await unread_count(db, bob.id) == 0

        await client.post(
            f"/api/v1/conversations/{room}/messages", json={"content": "three"}, headers=auth_headers(alice.id)
        )
        assert await unread_count(db, bob.id, room) == 1

        messages = await client.get(f"/api/v1/conversations/{room}/messages", headers=auth_headers(bob.id))
        assert [m["content"] for m in messages.json()["messages"]] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_conversation_list_hides_blocked_users(
        self, client: AsyncClient, db: AsyncSession, make_user
    ) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        carol = await make_user("Carol")
        await get_or_create_conversation(db, alice.id, bob.id)
        await get_or_create_conversation(db, alice.id, carol.id)
        await block_user(db, bob.id, alice.id)
        await db.commit()

        response = await client.get("/api/v1/conversations", headers=auth_headers(alice.id))
        conversations = response.json()["conversations"]
        assert len(conversations) == 1
        assert [p["id"] for p in conversations[0]["participants"]] == [carol.id]
