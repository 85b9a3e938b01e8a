"""Pydantic schemas for social endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# --- Follow / Block / Report ---


class FollowStatusResponse(BaseModel):
    is_following: bool


class BlockStatusResponse(BaseModel):
    is_blocked: bool


class HiddenUsersResponse(BaseModel):
    user_ids: list[str]


class ReportRequest(BaseModel):
    target_id: str = Field(..., min_length=1)
    type: str = Field(..., pattern="^(user|recruitment|group)$")
    reason: str = ""
    details: str | None = Field(None, max_length=2000)


class ReportReasonResponse(BaseModel):
    value: str
    label: str


# --- Notifications ---


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    content: str
    link: str | None = None
    sender_id: str | None = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    page: int
    per_page: int


class UnreadCountResponse(BaseModel):
    unread_count: int


# --- Notification relay ---


class NotifyFollowRequest(BaseModel):
    following_id: str | None = None
    follower_id: str | None = None


class NotifyChatMessageRequest(BaseModel):
    recipient_user_id: str | None = None
    sender_nickname: str | None = None
    is_group: bool = False
    group_name: str | None = None


class NotifyRecruitmentApplyRequest(BaseModel):
    creator_id: str | None = None
    recruitment_title: str | None = None
    applicant_nickname: str | None = None


class RelayResponse(BaseModel):
    ok: bool = True
