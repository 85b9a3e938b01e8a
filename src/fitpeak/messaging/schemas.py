"""Pydantic schemas for messaging endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ConversationIdResponse(BaseModel):
    conversation_id: str


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    message_type: str = Field("text", pattern="^(text|image|video)$")


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    content: str
    message_type: str
    created_at: datetime


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]


class ParticipantResponse(BaseModel):
    id: str
    nickname: str | None = None
    username: str | None = None
    avatar_url: str | None = None


class ConversationResponse(BaseModel):
    id: str
    kind: str
    title: str | None = None
    participants: list[ParticipantResponse] = []
    last_message: MessageResponse | None = None
    unread_count: int = 0


class ConversationListResponse(BaseModel):
    conversations: list[ConversationResponse]


class UnreadMessagesResponse(BaseModel):
    unread_count: int
