"""Community group business logic.

Rules:
- Category is one of ``GROUP_CATEGORIES``
- Every group owns a chat room; members of the group are members of the room
- Private groups cannot be joined directly
- The creator cannot leave; they update or delete the group instead
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.base import utcnow
from fitpeak.db.models import Group, GroupMember, Profile
from fitpeak.errors import ConflictError, InvalidArgument, NotFoundError, PermissionDenied
from fitpeak.geo.prefectures import normalize_prefecture
from fitpeak.messaging.conversations import add_participant, create_conversation, delete_room, remove_participant

logger = logging.getLogger(__name__)

GROUP_CATEGORIES = (
    "パワーリフティング",
    "ウェイトリフティング",
    "有酸素",
    "減量",
    "ダイエット",
    "ヨガ",
    "コンテスト",
    "合トレ募集",
    "ゆるトレ",
    "その他",
)


def _check_category(category: str | None) -> None:
    if category is not None and category not in GROUP_CATEGORIES:
        raise InvalidArgument(f"Invalid category: {category}")


async def get_group(db: AsyncSession, group_id: str) -> Group:
    group = await db.get(Group, group_id)
    if group is None:
        raise NotFoundError("グループが見つかりません")
    return group


async def is_member(db: AsyncSession, group_id: str, user_id: str) -> bool:
    return await db.get(GroupMember, (group_id, user_id)) is not None


async def member_count(db: AsyncSession, group_id: str) -> int:
    result = await db.execute(select(func.count()).select_from(GroupMember).where(GroupMember.group_id == group_id))
    return result.scalar_one()


async def create_group(
    db: AsyncSession,
    user_id: str,
    name: str,
    description: str | None = None,
    category: str | None = None,
    prefecture: str | None = None,
    is_private: bool = False,
    header_url: str | None = None,
) -> Group:
    """Create a group and its chat room. The creator joins both."""
    _check_category(category)
    room = await create_conversation(db, user_id, kind="group")
    group = Group(
        name=name,
        description=description,
        category=category,
        prefecture=normalize_prefecture(prefecture or "") or None,
        created_by=user_id,
        is_private=is_private,
        chat_room_id=room.id,
        header_url=header_url,
    )
    db.add(group)
    await db.flush()
    db.add(GroupMember(group_id=group.id, user_id=user_id))
    await db.flush()

    logger.info("Group created: %s (id=%s, creator=%s)", name, group.id, user_id)
    return group


async def update_group(db: AsyncSession, user_id: str, group_id: str, changes: dict[str, Any]) -> Group:
    """Creator-only partial update."""
    group = await get_group(db, group_id)
    if group.created_by != user_id:
        raise PermissionDenied()
    _check_category(changes.get("category"))
    if "prefecture" in changes:
        changes["prefecture"] = normalize_prefecture(changes["prefecture"] or "") or None
    for key, value in changes.items():
        setattr(group, key, value)
    group.updated_at = utcnow()
    await db.flush()
    return group


async def delete_group(db: AsyncSession, user_id: str, group_id: str) -> None:
    """Creator-only. Memberships and the chat room go with the group."""
    group = await get_group(db, group_id)
    if group.created_by != user_id:
        raise PermissionDenied()
    room_id = group.chat_room_id
    await db.execute(delete(GroupMember).where(GroupMember.group_id == group_id))
    await db.delete(group)
    await db.flush()
    if room_id:
        await delete_room(db, room_id)
    logger.info("Group deleted: %s by %s", group_id, user_id)


async def list_groups(
    db: AsyncSession,
    category: str | None = None,
    prefecture: str | None = None,
    exclude_creators: set[str] | None = None,
) -> list[tuple[Group, int]]:
    """Groups with member counts, newest first."""
    counts = (
        select(GroupMember.group_id, func.count().label("members"))
        .group_by(GroupMember.group_id)
        .subquery()
    )
    query = (
        select(Group, func.coalesce(counts.c.members, 0))
        .outerjoin(counts, counts.c.group_id == Group.id)
        .order_by(Group.created_at.desc())
    )
    if category:
        query = query.where(Group.category == category)
    if prefecture:
        query = query.where(Group.prefecture == normalize_prefecture(prefecture))
    if exclude_creators:
        query = query.where(Group.created_by.not_in(exclude_creators))
    result = await db.execute(query)
    return [(group, count) for group, count in result.all()]


async def list_user_groups(db: AsyncSession, user_id: str) -> list[Group]:
    result = await db.execute(
        select(Group)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .where(GroupMember.user_id == user_id)
        .order_by(GroupMember.joined_at.desc())
    )
    return list(result.scalars().all())


async def list_members(db: AsyncSession, group_id: str) -> list[Profile]:
    result = await db.execute(
        select(Profile)
        .join(GroupMember, GroupMember.user_id == Profile.id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.joined_at)
    )
    return list(result.scalars().all())


async def join_group(db: AsyncSession, user_id: str, group_id: str) -> GroupMember:
    """Join a public group and its chat room."""
    group = await get_group(db, group_id)
    if group.is_private:
        raise PermissionDenied("このグループは非公開です")
    if await is_member(db, group_id, user_id):
        raise ConflictError("既にグループに参加しています")

    member = GroupMember(group_id=group_id, user_id=user_id)
    db.add(member)
    await db.flush()
    if group.chat_room_id:
        await add_participant(db, group.chat_room_id, user_id)

    logger.info("User %s joined group %s", user_id, group_id)
    return member


async def leave_group(db: AsyncSession, user_id: str, group_id: str) -> None:
    """Leave a group and its chat room."""
    group = await get_group(db, group_id)
    if group.created_by == user_id:
        raise InvalidArgument("作成者はグループから退出できません")
    member = await db.get(GroupMember, (group_id, user_id))
    if member is None:
        raise NotFoundError("グループに参加していません")

    await db.delete(member)
    await db.flush()
    if group.chat_room_id:
        await remove_participant(db, group.chat_room_id, user_id)
    logger.info("User %s left group %s", user_id, group_id)
