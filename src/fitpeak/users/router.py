"""Profile router: all /api/v1/users/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.auth.dependencies import get_current_user_id, get_optional_user_id
from fitpeak.database import get_session
from fitpeak.db.models import Profile
from fitpeak.social.follow_service import list_followers, list_following
from fitpeak.social.safety_service import get_hidden_user_ids
from fitpeak.users.schemas import (
    ProfileListResponse,
    ProfileResponse,
    ProfileSummary,
    ProfileUpdateRequest,
    PublicProfileResponse,
)
from fitpeak.users.service import (
    get_or_create_profile,
    get_public_profile,
    is_profile_completed,
    own_view,
    recommended_users,
    update_profile,
)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def profile_summary(profile: Profile) -> ProfileSummary:
    return ProfileSummary(
        id=profile.id,
        username=profile.username,
        nickname=profile.nickname,
        avatar_url=profile.avatar_url,
        prefecture=profile.prefecture if profile.is_prefecture_public else None,
    )


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Get own full profile."""
    profile = await get_or_create_profile(db, user_id)
    await db.commit()
    return ProfileResponse(**own_view(profile), profile_completed=is_profile_completed(profile))


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Update own profile (only the fields sent)."""
    profile = await update_profile(db, user_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return ProfileResponse(**own_view(profile), profile_completed=is_profile_completed(profile))


@router.get("/me/recommendations", response_model=ProfileListResponse)
async def get_recommended_users(
    limit: int = Query(10, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> ProfileListResponse:
    """Gym, area and exercise mates for the home carousel and onboarding."""
    profiles = await recommended_users(db, user_id, limit)
    return ProfileListResponse(users=[profile_summary(p) for p in profiles], total=len(profiles))


@router.get("/{user_id}", response_model=PublicProfileResponse)
async def get_profile(
    user_id: str,
    viewer_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> PublicProfileResponse:
    """Public profile. Hidden (404) when either party blocked the other."""
    return PublicProfileResponse(**await get_public_profile(db, viewer_id, user_id))


@router.get("/{user_id}/followers", response_model=ProfileListResponse)
async def get_followers(
    user_id: str,
    viewer_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> ProfileListResponse:
    hidden = await get_hidden_user_ids(db, viewer_id) if viewer_id else set()
    profiles = await list_followers(db, user_id, exclude=hidden)
    return ProfileListResponse(users=[profile_summary(p) for p in profiles], total=len(profiles))


@router.get("/{user_id}/following", response_model=ProfileListResponse)
async def get_following(
    user_id: str,
    viewer_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> ProfileListResponse:
    hidden = await get_hidden_user_ids(db, viewer_id) if viewer_id else set()
    profiles = await list_following(db, user_id, exclude=hidden)
    return ProfileListResponse(users=[profile_summary(p) for p in profiles], total=len(profiles))
