"""Messages, read watermarks and unread counts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.base import utcnow
from fitpeak.db.models import Conversation, ConversationParticipant, Group, Message, Profile, Recruitment
from fitpeak.errors import InvalidArgument, NotFoundError, PermissionDenied
from fitpeak.outcome import ActionOutcome
from fitpeak.social.notification_fanout import NotificationFanOut, dispatch_best_effort, display_name
from fitpeak.social.notification_service import try_notify

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


@dataclass
class RoomContext:
    """What a room belongs to: nothing (1:1), a group, or a recruitment."""

    kind: str
    owner_id: str | None = None
    title: str | None = None


@dataclass
class ConversationSummary:
    id: str
    kind: str
    title: str | None
    participants: list[Profile] = field(default_factory=list)
    last_message: Message | None = None
    unread_count: int = 0


async def room_context(db: AsyncSession, conversation_id: str) -> RoomContext:
    group = (
        await db.execute(select(Group).where(Group.chat_room_id == conversation_id).limit(1))
    ).scalar_one_or_none()
    if group is not None:
        return RoomContext("group", group.id, group.name)
    recruitment = (
        await db.execute(select(Recruitment).where(Recruitment.chat_room_id == conversation_id).limit(1))
    ).scalar_one_or_none()
    if recruitment is not None:
        return RoomContext("recruitment", recruitment.id, recruitment.title)
    return RoomContext("direct")


async def participant_ids(db: AsyncSession, conversation_id: str) -> list[str]:
    result = await db.execute(
        select(ConversationParticipant.user_id).where(ConversationParticipant.conversation_id == conversation_id)
    )
    return list(result.scalars().all())


async def require_participant(db: AsyncSession, conversation_id: str, user_id: str) -> ConversationParticipant:
    """
    Raises:
        NotFoundError: The conversation does not exist.
        PermissionDenied: The caller is not a participant.
    """
    if await db.get(Conversation, conversation_id) is None:
        raise NotFoundError("会話が見つかりません")
    participant = await db.get(ConversationParticipant, (conversation_id, user_id))
    if participant is None:
        raise PermissionDenied("この会話に参加していません")
    return participant


async def list_messages(
    db: AsyncSession,
    user_id: str,
    conversation_id: str,
    limit: int = 50,
    offset: int = 0,
) -> list[Message]:
    """Most recent ``limit`` messages, returned oldest first."""
    await require_participant(db, conversation_id, user_id)
    result = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))


async def send_message(
    db: AsyncSession,
    sender_id: str,
    conversation_id: str,
    content: str,
    fanout: NotificationFanOut,
    message_type: str = "text",
) -> ActionOutcome[Message]:
    """Store a message, then notify every other participant (best-effort)."""
    await require_participant(db, conversation_id, sender_id)
    content = content.strip()
    if not content:
        raise InvalidArgument("メッセージを入力してください")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise InvalidArgument(f"メッセージは{MAX_MESSAGE_LENGTH}文字以内で入力してください")

    now = utcnow()
    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        message_type=message_type,
        created_at=now,
    )
    db.add(message)
    await db.execute(update(Conversation).where(Conversation.id == conversation_id).values(updated_at=now))
    await db.flush()

    outcome = ActionOutcome(result=message)
    context = await room_context(db, conversation_id)
    sender_name = display_name(await db.get(Profile, sender_id))
    link = f"/dashboard/messages/{conversation_id}"
    is_group = context.kind != "direct"
    if is_group:
        text = f"{sender_name}さんが「{context.title}」でメッセージを送信しました"
    else:
        text = "新着メッセージがあります"

    for recipient_id in await participant_ids(db, conversation_id):
        if recipient_id == sender_id:
            continue
        outcome.warn(await try_notify(db, recipient_id, "message", text, sender_id=sender_id, link=link))
        outcome.warn(
            await dispatch_best_effort(
                "chat_message",
                fanout.notify_chat_message(
                    db,
                    recipient_id,
                    sender_nickname=sender_name,
                    is_group=is_group,
                    group_name=context.title,
                    conversation_id=conversation_id,
                ),
            )
        )
    return outcome


async def mark_read(db: AsyncSession, user_id: str, conversation_id: str) -> None:
    """Move the caller's read watermark to now."""
    participant = await require_participant(db, conversation_id, user_id)
    participant.last_read_at = utcnow()
    await db.flush()


def _unread_query(user_id: str) -> Select[tuple[int]]:
    # Missing watermark means nothing was read yet.
    return (
        select(func.count())
        .select_from(Message)
        .join(
            ConversationParticipant,
            (ConversationParticipant.conversation_id == Message.conversation_id)
            & (ConversationParticipant.user_id == user_id),
        )
        .where(
            Message.sender_id != user_id,
            or_(
                ConversationParticipant.last_read_at.is_(None),
                Message.created_at > ConversationParticipant.last_read_at,
            ),
        )
    )


async def unread_count(db: AsyncSession, user_id: str, conversation_id: str | None = None) -> int:
    """Messages from others newer than the caller's watermark, overall or in one room."""
    query = _unread_query(user_id)
    if conversation_id is not None:
        query = query.where(Message.conversation_id == conversation_id)
    result = await db.execute(query)
    return result.scalar_one()


async def list_conversations(db: AsyncSession, user_id: str, hidden: set[str] | None = None) -> list[ConversationSummary]:
    """The caller's rooms, most recently active first.

    1:1 rooms with a hidden (blocked or blocking) user are left out.
    """
    result = await db.execute(
        select(Conversation)
        .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
        .where(ConversationParticipant.user_id == user_id)
        .order_by(Conversation.updated_at.desc())
    )
    summaries = []
    for conversation in result.scalars().all():
        others = [uid for uid in await participant_ids(db, conversation.id) if uid != user_id]
        context = await room_context(db, conversation.id)
        if context.kind == "direct" and hidden and any(uid in hidden for uid in others):
            continue
        profiles = (await db.execute(select(Profile).where(Profile.id.in_(others)))).scalars().all() if others else []
        last = (
            await db.execute(
                select(Message)
                .where(Message.conversation_id == conversation.id)
                .order_by(Message.created_at.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
        summaries.append(
            ConversationSummary(
                id=conversation.id,
                kind=context.kind,
                title=context.title,
                participants=list(profiles),
                last_message=last,
                unread_count=await unread_count(db, user_id, conversation.id),
            )
        )
    return summaries
