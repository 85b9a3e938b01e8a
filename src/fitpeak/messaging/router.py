"""Messaging endpoints: /api/v1/conversations/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.auth.dependencies import get_current_user_id, get_optional_user_id
from fitpeak.database import get_session
from fitpeak.db.models import Message
from fitpeak.errors import AuthenticationRequired
from fitpeak.messaging.conversations import get_or_create_conversation
from fitpeak.messaging.schemas import (
    ConversationIdResponse,
    ConversationListResponse,
    ConversationResponse,
    MessageListResponse,
    MessageResponse,
    ParticipantResponse,
    SendMessageRequest,
    UnreadMessagesResponse,
)
from fitpeak.messaging.service import list_conversations, list_messages, mark_read, send_message, unread_count
from fitpeak.social.notification_fanout import NotificationFanOut, get_fanout
from fitpeak.social.safety_service import get_hidden_user_ids

router = APIRouter(prefix="/api/v1/conversations", tags=["Messaging"])


def _message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        message_type=message.message_type,
        created_at=message.created_at,
    )


@router.post("/direct/{other_user_id}", response_model=ConversationIdResponse)
async def open_direct_conversation(
    other_user_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> ConversationIdResponse:
    """Find or create the 1:1 conversation with another user."""
    if user_id is None:
        raise AuthenticationRequired()
    conversation_id = await get_or_create_conversation(db, user_id, other_user_id)
    await db.commit()
    return ConversationIdResponse(conversation_id=conversation_id)


@router.get("", response_model=ConversationListResponse)
async def get_conversations(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> ConversationListResponse:
    hidden = await get_hidden_user_ids(db, user_id)
    summaries = await list_conversations(db, user_id, hidden)
    return ConversationListResponse(
        conversations=[
            ConversationResponse(
                id=s.id,
                kind=s.kind,
                title=s.title,
                participants=[
                    ParticipantResponse(id=p.id, nickname=p.nickname, username=p.username, avatar_url=p.avatar_url)
                    for p in s.participants
                ],
                last_message=_message_response(s.last_message) if s.last_message else None,
                unread_count=s.unread_count,
            )
            for s in summaries
        ]
    )


@router.get("/unread-count", response_model=UnreadMessagesResponse)
async def get_unread_count(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> UnreadMessagesResponse:
    return UnreadMessagesResponse(unread_count=await unread_count(db, user_id))


@router.get("/{conversation_id}/messages", response_model=MessageListResponse)
async def get_messages(
    conversation_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> MessageListResponse:
    messages = await list_messages(db, user_id, conversation_id, limit, offset)
    return MessageListResponse(messages=[_message_response(m) for m in messages])


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def post_message(
    conversation_id: str,
    body: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    fanout: NotificationFanOut = Depends(get_fanout),
) -> MessageResponse:
    """Send a message; recipients are notified best-effort."""
    outcome = await send_message(db, user_id, conversation_id, body.content, fanout, body.message_type)
    await db.commit()
    return _message_response(outcome.result)


@router.post("/{conversation_id}/read")
async def read_conversation(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await mark_read(db, user_id, conversation_id)
    await db.commit()
    return {}
