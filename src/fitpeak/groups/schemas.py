"""Pydantic schemas for group endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from fitpeak.users.schemas import ProfileSummary


class CreateGroupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    description: str | None = Field(None, max_length=2000)
    category: str | None = None
    prefecture: str | None = None
    is_private: bool = False
    header_url: str | None = Field(None, max_length=1024)


class UpdateGroupRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=64)
    description: str | None = Field(None, max_length=2000)
    category: str | None = None
    prefecture: str | None = None
    is_private: bool | None = None
    header_url: str | None = Field(None, max_length=1024)


class GroupResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    category: str | None = None
    prefecture: str | None = None
    created_by: str
    is_private: bool
    chat_room_id: str | None = None
    header_url: str | None = None
    member_count: int = 0
    created_at: datetime


class GroupDetailResponse(GroupResponse):
    members: list[ProfileSummary] = []
    is_member: bool = False


class GroupListResponse(BaseModel):
    groups: list[GroupResponse]
    total: int
