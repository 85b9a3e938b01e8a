"""Profile business logic."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from fitpeak.db.base import utcnow
from fitpeak.db.models import Profile
from fitpeak.errors import ConflictError, NotFoundError
from fitpeak.geo.prefectures import get_prefecture_match_values, normalize_prefecture
from fitpeak.sanitizer import ensure_list, normalize_profile
from fitpeak.social.follow_service import count_followers, count_following, is_following
from fitpeak.social.safety_service import get_hidden_user_ids, is_blocked_between

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

_LIFTS = ("bench_press_max", "squat_max", "deadlift_max")

# newest profiles examined per recommendation request
RECOMMENDATION_SCAN = 500


def calculate_age(birthday: date, today: date | None = None) -> int:
    today = today or date.today()
    return today.year - birthday.year - ((today.month, today.day) < (birthday.month, birthday.day))


def big3_total(profile: Profile) -> float | None:
    """Sum of the three lift maxes; ``None`` when none is recorded."""
    values = [getattr(profile, name) for name in _LIFTS]
    if all(v is None for v in values):
        return None
    return float(sum(v or 0 for v in values))


async def get_or_create_profile(db: AsyncSession, user_id: str) -> Profile:
    profile = await db.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id, exercises=[], achievements=[], certifications=[])
        db.add(profile)
        await db.flush()
    return profile


async def update_profile(db: AsyncSession, user_id: str, changes: dict[str, Any]) -> Profile:
    """
    Apply a partial update to the caller's profile.

    The prefecture is stored canonicalized and the big-3 total is recomputed
    whenever a lift max changes.

    Raises:
        ConflictError: If the username is already taken (case-insensitive).
    """
    profile = await get_or_create_profile(db, user_id)

    username = changes.get("username")
    if username:
        result = await db.execute(
            select(Profile.id).where(func.lower(Profile.username) == username.lower(), Profile.id != user_id)
        )
        if result.first() is not None:
            raise ConflictError("このユーザー名は既に使われています")

    if "prefecture" in changes:
        changes["prefecture"] = normalize_prefecture(changes["prefecture"] or "") or None

    for key, value in changes.items():
        setattr(profile, key, value)
    if any(name in changes for name in _LIFTS):
        profile.big3_total = big3_total(profile)
    profile.updated_at = utcnow()

    await db.flush()
    logger.info("profile_updated", user_id=user_id, fields=sorted(changes))
    return profile


def _profile_row(profile: Profile) -> dict[str, Any]:
    return {column.key: getattr(profile, column.key) for column in Profile.__table__.columns}


def own_view(profile: Profile) -> dict[str, Any]:
    """Every profile field, with list-valued fields normalized."""
    return normalize_profile(_profile_row(profile)) or {}


def public_view(profile: Profile) -> dict[str, Any]:
    """Profile fields as another user may see them."""
    row = own_view(profile)
    if not profile.is_prefecture_public:
        row["prefecture"] = None
    if not profile.is_home_gym_public:
        row["home_gym"] = None
    birthday = row.pop("birthday", None)
    row["age"] = calculate_age(birthday) if birthday and profile.is_age_public else None
    return row


async def get_public_profile(db: AsyncSession, viewer_id: str | None, user_id: str) -> dict[str, Any]:
    """
    Another user's profile with follow counts.

    Raises:
        NotFoundError: No such profile, or a block exists in either direction.
    """
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise NotFoundError("ユーザーが見つかりません")
    if viewer_id and viewer_id != user_id and await is_blocked_between(db, viewer_id, user_id):
        raise NotFoundError("ユーザーが見つかりません")

    row = public_view(profile)
    row["follower_count"] = await count_followers(db, user_id)
    row["following_count"] = await count_following(db, user_id)
    row["is_following"] = bool(viewer_id) and await is_following(db, viewer_id, user_id)
    return row


def _exercise_set(profile: Profile) -> set[str]:
    return {item for item in ensure_list(profile.exercises) if isinstance(item, str) and item.strip()}


def is_profile_completed(profile: Profile | None) -> bool:
    """Onboarding is finished: avatar, display name, bio, prefecture and at least one exercise.

    Only completed profiles are offered as recommendations.
    """
    if profile is None:
        return False
    name = (profile.nickname or profile.username or "").strip()
    return all(
        (
            profile.avatar_url,
            name,
            (profile.bio or "").strip(),
            (profile.prefecture or "").strip(),
            _exercise_set(profile),
        )
    )


async def recommended_users(db: AsyncSession, user_id: str, limit: int = 10) -> list[Profile]:
    """Completed profiles sharing the caller's gym, prefecture or an exercise, newest first.

    A caller with none of the three filled in gets an empty list.
    """
    me = await db.get(Profile, user_id)
    if me is None:
        return []
    gym = (me.home_gym or "").strip().lower()
    prefecture = normalize_prefecture(me.prefecture or "")
    exercises = _exercise_set(me)
    if not (gym or prefecture or exercises):
        return []

    area = set(get_prefecture_match_values(prefecture)) if prefecture else set()
    hidden = await get_hidden_user_ids(db, user_id)
    candidates = await db.scalars(
        select(Profile)
        .where(Profile.id != user_id, Profile.avatar_url.is_not(None))
        .order_by(Profile.created_at.desc())
        .limit(RECOMMENDATION_SCAN)
    )

    picks: list[Profile] = []
    for candidate in candidates.all():
        if candidate.id in hidden or not is_profile_completed(candidate):
            continue
        same_gym = bool(gym) and gym in (candidate.home_gym or "").lower()
        same_area = (candidate.prefecture or "").strip() in area
        if same_gym or same_area or exercises & _exercise_set(candidate):
            picks.append(candidate)
            if len(picks) == limit:
                break
    return picks
