"""Notification endpoints: the in-app inbox plus the email/push relay.

The relay routes are thin adapters over ``NotificationFanOut``; they are
restricted to logged-in callers so they cannot be used as an open mail relay.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.auth.dependencies import get_current_user_id
from fitpeak.database import get_session
from fitpeak.errors import InvalidArgument, NotFoundError
from fitpeak.social.notification_fanout import NotificationFanOut, get_fanout
from fitpeak.social.notification_service import (
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
)
from fitpeak.social.schemas import (
    NotificationListResponse,
    NotificationResponse,
    NotifyChatMessageRequest,
    NotifyFollowRequest,
    NotifyRecruitmentApplyRequest,
    RelayResponse,
    UnreadCountResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Notifications"])
relay_router = APIRouter(prefix="/api", tags=["Notification relay"])


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Newest first. Reading the list does not mark anything read."""
    notifications, total = await get_notifications(db, user_id, page, per_page)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/notifications/read-all", status_code=200)
async def mark_all_read(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Returns how many notifications flipped from unread to read."""
    count = await mark_all_as_read(db, user_id)
    await db.commit()
    return {"updated": count}


@router.post("/notifications/{notification_id}/read", status_code=200)
async def mark_notification_read(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    # another user's id is indistinguishable from a missing one
    if not await mark_as_read(db, user_id, notification_id):
        raise NotFoundError("通知が見つかりません")
    await db.commit()
    return {}


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_notification_count(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    count = await get_unread_count(db, user_id)
    return UnreadCountResponse(unread_count=count)


# ── Relay ──


@relay_router.post("/notify-follow", response_model=RelayResponse)
async def notify_follow(
    body: NotifyFollowRequest,
    _user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    fanout: NotificationFanOut = Depends(get_fanout),
) -> RelayResponse:
    """Email (and LINE push, when linked) the followed user."""
    if not body.following_id or not body.follower_id:
        raise InvalidArgument("following_id and follower_id are required")
    await fanout.notify_follow(db, body.following_id, body.follower_id)
    return RelayResponse()


@relay_router.post("/notify-chat-message", response_model=RelayResponse)
async def notify_chat_message(
    body: NotifyChatMessageRequest,
    _user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    fanout: NotificationFanOut = Depends(get_fanout),
) -> RelayResponse:
    if not body.recipient_user_id:
        raise InvalidArgument("recipient_user_id is required")
    await fanout.notify_chat_message(
        db,
        body.recipient_user_id,
        sender_nickname=body.sender_nickname,
        is_group=body.is_group,
        group_name=body.group_name,
    )
    return RelayResponse()


@relay_router.post("/notify-recruitment-apply", response_model=RelayResponse)
async def notify_recruitment_apply(
    body: NotifyRecruitmentApplyRequest,
    _user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    fanout: NotificationFanOut = Depends(get_fanout),
) -> RelayResponse:
    if not body.creator_id:
        raise InvalidArgument("creator_id is required")
    await fanout.notify_recruitment_apply(
        db,
        body.creator_id,
        recruitment_title=body.recruitment_title,
        applicant_nickname=body.applicant_nickname,
    )
    return RelayResponse()
