"""Find-or-create of the 1:1 conversation between two users.

A 1:1 conversation is a ``direct`` room both users participate in. Group
and recruitment rooms are created with their own ``kind`` and are deleted
together with the group or post, so they never resurface as 1:1 rooms. When several qualifying
rooms exist (possible only through a concurrent-create race) the first one
found wins; there is no recency tie-break.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.models import Conversation, ConversationParticipant, Group, Message, Recruitment
from fitpeak.errors import InvalidArgument

logger = logging.getLogger(__name__)


async def is_bound_room(db: AsyncSession, conversation_id: str) -> bool:
    """True for group and recruitment rooms, including any still referenced by ``chat_room_id``."""
    conversation = await db.get(Conversation, conversation_id)
    if conversation is not None and conversation.kind != "direct":
        return True
    group = await db.execute(select(Group.id).where(Group.chat_room_id == conversation_id).limit(1))
    if group.first() is not None:
        return True
    recruitment = await db.execute(
        select(Recruitment.id).where(Recruitment.chat_room_id == conversation_id).limit(1)
    )
    return recruitment.first() is not None


async def create_conversation(db: AsyncSession, *participant_ids: str, kind: str = "direct") -> Conversation:
    """Create a room of ``kind`` and add the participants.

    Two writes in the caller's transaction; nothing is committed here.
    """
    conversation = Conversation(kind=kind)
    db.add(conversation)
    await db.flush()
    db.add_all(
        ConversationParticipant(conversation_id=conversation.id, user_id=user_id)
        for user_id in dict.fromkeys(participant_ids)
    )
    await db.flush()
    return conversation


async def get_or_create_conversation(db: AsyncSession, user_a: str, user_b: str) -> str:
    """Return the id of the 1:1 conversation between ``user_a`` and ``user_b``."""
    if user_a == user_b:
        raise InvalidArgument("自分自身とは会話できません")

    mine = await db.execute(
        select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user_a)
    )
    my_ids = list(mine.scalars().all())
    if my_ids:
        shared = await db.execute(
            select(ConversationParticipant.conversation_id)
            .join(Conversation, Conversation.id == ConversationParticipant.conversation_id)
            .where(
                ConversationParticipant.user_id == user_b,
                ConversationParticipant.conversation_id.in_(my_ids),
                Conversation.kind == "direct",
            )
        )
        for conversation_id in shared.scalars().all():
            if not await is_bound_room(db, conversation_id):
                return conversation_id

    conversation = await create_conversation(db, user_a, user_b)
    logger.info("Created conversation %s for %s and %s", conversation.id, user_a, user_b)
    return conversation.id


async def add_participant(db: AsyncSession, conversation_id: str, user_id: str) -> None:
    """Add ``user_id`` to the room unless already present."""
    existing = await db.get(ConversationParticipant, (conversation_id, user_id))
    if existing is None:
        db.add(ConversationParticipant(conversation_id=conversation_id, user_id=user_id))
        await db.flush()


async def remove_participant(db: AsyncSession, conversation_id: str, user_id: str) -> None:
    existing = await db.get(ConversationParticipant, (conversation_id, user_id))
    if existing is not None:
        await db.delete(existing)
        await db.flush()


async def delete_room(db: AsyncSession, conversation_id: str) -> None:
    """Remove a room with its participants and messages."""
    await db.execute(delete(Message).where(Message.conversation_id == conversation_id))
    await db.execute(delete(ConversationParticipant).where(ConversationParticipant.conversation_id == conversation_id))
    await db.execute(delete(Conversation).where(Conversation.id == conversation_id))
    await db.flush()
