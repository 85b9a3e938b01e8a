"""Pydantic schemas for recruitment endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CreateRecruitmentRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=128)
    description: str | None = Field(None, max_length=2000)
    target_body_part: str | None = None
    event_date: datetime
    deadline_at: datetime | None = None
    location: str | None = Field(None, max_length=256)
    level: str | None = None


class UpdateRecruitmentRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, max_length=2000)
    target_body_part: str | None = None
    event_date: datetime | None = None
    deadline_at: datetime | None = None
    location: str | None = Field(None, max_length=256)
    level: str | None = None
    status: str | None = None


class RecruitmentResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: str | None = None
    target_body_part: str | None = None
    tags: list[str] = []
    event_date: datetime
    deadline_at: datetime | None = None
    location: str | None = None
    level: str | None = None
    status: str
    chat_room_id: str | None = None
    created_at: datetime
    profiles: dict[str, Any] | None = None
    approved_count: int | None = None
    my_status: str | None = None


class RecruitmentListResponse(BaseModel):
    recruitments: list[RecruitmentResponse]
    total: int


class ParticipantResponse(BaseModel):
    user_id: str
    status: str
    nickname: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    created_at: datetime


class ParticipantListResponse(BaseModel):
    participants: list[ParticipantResponse]
