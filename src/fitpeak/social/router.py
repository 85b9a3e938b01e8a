"""Relationship endpoints: follows, blocks and reports."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.auth.dependencies import get_current_user_id, get_optional_user_id
from fitpeak.database import get_session
from fitpeak.social.follow_service import follow_user, is_following, unfollow_user
from fitpeak.social.notification_fanout import NotificationFanOut, get_fanout
from fitpeak.social.safety_service import (
    REPORT_REASONS,
    block_user,
    get_hidden_user_ids,
    is_blocked_between,
    report_content,
    unblock_user,
)
from fitpeak.social.schemas import (
    BlockStatusResponse,
    FollowStatusResponse,
    HiddenUsersResponse,
    ReportReasonResponse,
    ReportRequest,
)

router = APIRouter(prefix="/api/v1", tags=["Social"])


# ── Follows ──


@router.post("/follows/{target_id}")
async def follow(
    target_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
    fanout: NotificationFanOut = Depends(get_fanout),
) -> dict:
    """Follow a user. Notification failures never undo the follow."""
    await follow_user(db, user_id, target_id, fanout)
    await db.commit()
    return {}


@router.delete("/follows/{target_id}")
async def unfollow(
    target_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await unfollow_user(db, user_id, target_id)
    await db.commit()
    return {}


@router.get("/follows/{target_id}", response_model=FollowStatusResponse)
async def follow_status(
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> FollowStatusResponse:
    return FollowStatusResponse(is_following=await is_following(db, user_id, target_id))


# ── Blocks ──


@router.get("/blocks/hidden", response_model=HiddenUsersResponse)
async def hidden_users(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> HiddenUsersResponse:
    """Users hidden from the caller: blocked by them or blocking them."""
    return HiddenUsersResponse(user_ids=sorted(await get_hidden_user_ids(db, user_id)))


@router.post("/blocks/{target_id}")
async def block(
    target_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await block_user(db, user_id, target_id)
    await db.commit()
    return {}


@router.delete("/blocks/{target_id}")
async def unblock(
    target_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await unblock_user(db, user_id, target_id)
    await db.commit()
    return {}


@router.get("/blocks/{target_id}", response_model=BlockStatusResponse)
async def block_status(
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> BlockStatusResponse:
    return BlockStatusResponse(is_blocked=await is_blocked_between(db, user_id, target_id))


# ── Reports ──


@router.get("/reports/reasons", response_model=list[ReportReasonResponse])
async def report_reasons() -> list[ReportReasonResponse]:
    return [ReportReasonResponse(value=value, label=label) for value, label in REPORT_REASONS.items()]


@router.post("/reports")
async def report(
    body: ReportRequest,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await report_content(db, user_id, body.target_id, body.type, body.reason, body.details)
    await db.commit()
    return {}
