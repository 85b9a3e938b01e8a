"""Group membership tests."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.models import ConversationParticipant
from fitpeak.errors import ConflictError, InvalidArgument, PermissionDenied
from fitpeak.groups.service import create_group, join_group, leave_group, list_groups
from tests.conftest import auth_headers


async def _room_members(db: AsyncSession, room_id: str) -> set[str]:
    result = await db.execute(
        select(ConversationParticipant.user_id).where(ConversationParticipant.conversation_id == room_id)
    )
    return set(result.scalars().all())


class TestMembership:
    @pytest.mark.asyncio
    async def test_join_and_leave_track_chat_room(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        group = await create_group(db, alice.id, "Powerlifters", category="パワーリフティング")
        assert await _room_members(db, group.chat_room_id) == {alice.id}

        await join_group(db, bob.id, group.id)
        assert await _room_members(db, group.chat_room_id) == {alice.id, bob.id}

        await leave_group(db, bob.id, group.id)
        assert await _room_members(db, group.chat_room_id) == {alice.id}

    @pytest.mark.asyncio
    async def test_join_twice_conflicts(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        group = await create_group(db, alice.id, "Runners", category="有酸素")
        await join_group(db, bob.id, group.id)
        with pytest.raises(ConflictError):
            await join_group(db, bob.id, group.id)

    @pytest.mark.asyncio
    async def test_private_group_cannot_be_joined(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        group = await create_group(db, alice.id, "Invite only", is_private=True)
        with pytest.raises(PermissionDenied):
            await join_group(db, bob.id, group.id)

    @pytest.mark.asyncio
    async def test_creator_cannot_leave(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        group = await create_group(db, alice.id, "Yoga club", category="ヨガ")
        with pytest.raises(InvalidArgument):
            await leave_group(db, alice.id, group.id)

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        with pytest.raises(InvalidArgument):
            await create_group(db, alice.id, "Chess", category="チェス")

    @pytest.mark.asyncio
    async def test_list_filters_by_prefecture_variant(self, db: AsyncSession, make_user) -> None:
        alice = await make_user("Alice")
        tokyo = await create_group(db, alice.id, "Tokyo lifters", prefecture="東京")
        await create_group(db, alice.id, "Osaka lifters", prefecture="大阪府")

        rows = await list_groups(db, prefecture="東京都")

        assert [(g.id, count) for g, count in rows] == [(tokyo.id, 1)]
        assert tokyo.prefecture == "東京都"


@pytest.mark.asyncio
async def test_group_endpoints(client: AsyncClient, make_user) -> None:
    alice = await make_user("Alice")
    bob = await make_user("Bob")

    created = await client.post(
        "/api/v1/groups",
        json={"name": "Leg Day", "category": "合トレ募集"},
        headers=auth_headers(alice.id),
    )
    assert created.status_code == 201
    group_id = created.json()["id"]

    joined = await client.post(f"/api/v1/groups/{group_id}/join", headers=auth_headers(bob.id))
    assert joined.json() == {}

    detail = await client.get(f"/api/v1/groups/{group_id}", headers=auth_headers(bob.id))
    data = detail.json()
    assert data["member_count"] == 2
    assert data["is_member"] is True
    assert {m["id"] for m in data["members"]} == {alice.id, bob.id}

    mine = await client.get("/api/v1/groups/mine", headers=auth_headers(bob.id))
    assert [g["id"] for g in mine.json()["groups"]] == [group_id]

    forbidden = await client.patch(f"/api/v1/groups/{group_id}", json={"name": "Mine"}, headers=auth_headers(bob.id))
    assert forbidden.status_code == 403

    removed = await client.delete(f"/api/v1/groups/{group_id}", headers=auth_headers(alice.id))
    assert removed.status_code == 200
    missing = await client.get(f"/api/v1/groups/{group_id}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_categories(client: AsyncClient) -> None:
    response = await client.get("/api/v1/groups/categories")
    assert "パワーリフティング" in response.json()
