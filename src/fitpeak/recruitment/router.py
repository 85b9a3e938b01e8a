"""Recruitment endpoints: /api/v1/recruitments/*."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.auth.dependencies import get_current_user_id, get_optional_user_id
from fitpeak.database import get_session
from fitpeak.db.models import Profile, Recruitment, RecruitmentParticipant
from fitpeak.errors import PermissionDenied
from fitpeak.recruitment import service
from fitpeak.recruitment.schemas import (
    CreateRecruitmentRequest,
    ParticipantListResponse,
    ParticipantResponse,
    RecruitmentListResponse,
    RecruitmentResponse,
    UpdateRecruitmentRequest,
)
from fitpeak.sanitizer import normalize_recruitment
from fitpeak.social.notification_fanout import NotificationFanOut, get_fanout
from fitpeak.social.safety_service import get_hidden_user_ids

router = APIRouter(prefix="/api/v1/recruitments", tags=["Recruitments"])


def _recruitment_response(recruitment: Recruitment, owner: Profile | None = None, **extra: Any) -> RecruitmentResponse:
    row = {column.key: getattr(recruitment, column.key) for column in Recruitment.__table__.columns}
    if owner is not None:
        row["profiles"] = {
            "id": owner.id,
            "nickname": owner.nickname,
            "username": owner.username,
            "avatar_url": owner.avatar_url,
        }
    return RecruitmentResponse(**(normalize_recruitment(row) or {}), **extra)


def _participant_response(participation: RecruitmentParticipant, profile: Profile | None) -> ParticipantResponse:
    return ParticipantResponse(
        user_id=participation.user_id,
        status=participation.status,
        nickname=profile.nickname if profile else None,
        username=profile.username if profile else None,
        avatar_url=profile.avatar_url if profile else None,
        created_at=participation.created_at,
    )


@router.post("", response_model=RecruitmentResponse, status_code=201)
async def create(
    body: CreateRecruitmentRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> RecruitmentResponse:
    recruitment = await service.create_recruitment(db, user_id, **body.model_dump())
    await db.commit()
    return _recruitment_response(recruitment)


@router.get("", response_model=RecruitmentListResponse)
async def list_open(
    body_part: str | None = Query(None),
    level: str | None = Query(None),
    sort: str = Query("newest", pattern="^(newest|date_nearest|date_furthest)$"),
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> RecruitmentListResponse:
    """Open posts, blocked users' posts left out."""
    hidden = await get_hidden_user_ids(db, user_id) if user_id else set()
    rows = await service.list_open_recruitments(db, body_part, level, sort, exclude_owners=hidden)
    statuses = await service.my_participation_statuses(db, user_id) if user_id else {}
    return RecruitmentListResponse(
        recruitments=[_recruitment_response(r, owner, my_status=statuses.get(r.id)) for r, owner in rows],
        total=len(rows),
    )


@router.get("/mine", response_model=RecruitmentListResponse)
async def list_mine(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> RecruitmentListResponse:
    recruitments = await service.list_my_recruitments(db, user_id)
    return RecruitmentListResponse(
        recruitments=[
            _recruitment_response(r, approved_count=await service.count_approved(db, r.id)) for r in recruitments
        ],
        total=len(recruitments),
    )


@router.get("/recommended", response_model=RecruitmentListResponse)
async def recommended(
    limit: int = Query(10, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> RecruitmentListResponse:
    """Workouts near the caller or for body parts they train."""
    hidden = await get_hidden_user_ids(db, user_id)
    rows = await service.recommended_recruitments(db, user_id, limit, exclude_owners=hidden)
    statuses = await service.my_participation_statuses(db, user_id)
    return RecruitmentListResponse(
        recruitments=[_recruitment_response(r, owner, my_status=statuses.get(r.id)) for r, owner in rows],
        total=len(rows),
    )


@router.get("/{recruitment_id}", response_model=RecruitmentResponse)
async def detail(
    recruitment_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> RecruitmentResponse:
    recruitment = await service.get_recruitment(db, recruitment_id)
    owner = await db.get(Profile, recruitment.user_id)
    statuses = await service.my_participation_statuses(db, user_id) if user_id else {}
    return _recruitment_response(
        recruitment,
        owner,
        approved_count=await service.count_approved(db, recruitment_id),
        my_status=statuses.get(recruitment_id),
    )


@router.patch("/{recruitment_id}", response_model=RecruitmentResponse)
async def update(
    recruitment_id: str,
    body: UpdateRecruitmentRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> RecruitmentResponse:
    recruitment = await service.update_recruitment(db, user_id, recruitment_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return _recruitment_response(recruitment)


@router.delete("/{recruitment_id}")
async def delete(
    recruitment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Owner-only. Participants are notified, then the post is removed."""
    await service.delete_recruitment(db, user_id, recruitment_id)
    await db.commit()
    return {}


@router.get("/{recruitment_id}/participants", response_model=ParticipantListResponse)
async def participants(
    recruitment_id: str,
    status: str | None = Query(None, pattern="^(pending|approved|rejected|withdrawn)$"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> ParticipantListResponse:
    """Owner sees every applicant; others see approved participants only."""
    recruitment = await service.get_recruitment(db, recruitment_id)
    if recruitment.user_id != user_id:
        if status not in (None, "approved"):
            raise PermissionDenied()
        status = "approved"
    rows = await service.list_participants(db, recruitment_id, status)
    return ParticipantListResponse(participants=[_participant_response(rp, p) for rp, p in rows])


@router.post("/{recruitment_id}/apply")
async def apply(
    recruitment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    fanout: NotificationFanOut = Depends(get_fanout),
) -> dict:
    await service.apply(db, user_id, recruitment_id, fanout)
    await db.commit()
    return {}


@router.post("/{recruitment_id}/participants/{applicant_id}/approve")
async def approve(
    recruitment_id: str,
    applicant_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    fanout: NotificationFanOut = Depends(get_fanout),
) -> dict:
    await service.approve(db, user_id, recruitment_id, applicant_id, fanout)
    await db.commit()
    return {}


@router.post("/{recruitment_id}/participants/{applicant_id}/reject")
async def reject(
    recruitment_id: str,
    applicant_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await service.reject(db, user_id, recruitment_id, applicant_id)
    await db.commit()
    return {}


@router.post("/{recruitment_id}/withdraw")
async def withdraw(
    recruitment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await service.withdraw(db, user_id, recruitment_id)
    await db.commit()
    return {}
