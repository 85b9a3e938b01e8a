"""Geography-scoped profile listing and per-prefecture counts.

Both reads degrade to empty results on a database error; the map view
renders empty rather than failing.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.models import Profile
from fitpeak.geo.prefectures import get_prefecture_match_values, normalize_prefecture

logger = logging.getLogger(__name__)

ALL_PREFECTURES = "all"


async def get_prefecture_users(db: AsyncSession, prefecture: str | None) -> list[dict[str, Any]]:
    """Profiles whose public prefecture matches ``prefecture`` (or every public one for ``all``)."""
    prefecture = (prefecture or "").strip()
    if not prefecture:
        return []

    query = (
        select(Profile)
        .where(Profile.is_prefecture_public.is_(True), Profile.prefecture.is_not(None))
        .order_by(Profile.created_at.desc())
    )
    if prefecture != ALL_PREFECTURES:
        query = query.where(Profile.prefecture.in_(get_prefecture_match_values(normalize_prefecture(prefecture))))

    try:
        result = await db.execute(query)
    except SQLAlchemyError:
        logger.warning("Prefecture user lookup failed for %s", prefecture, exc_info=True)
        return []
    return [
        {
            "id": p.id,
            "nickname": p.nickname,
            "username": p.username,
            "bio": p.bio,
            "avatar_url": p.avatar_url,
            "prefecture": p.prefecture,
            "created_at": p.created_at,
        }
        for p in result.scalars().all()
    ]


async def get_prefecture_counts(db: AsyncSession) -> dict[str, int]:
    """Profile counts keyed by canonical prefecture name."""
    try:
        result = await db.execute(
            select(Profile.prefecture, func.count())
            .where(Profile.prefecture.is_not(None))
            .group_by(Profile.prefecture)
        )
    except SQLAlchemyError:
        logger.warning("Prefecture count aggregation failed", exc_info=True)
        return {}

    counts: dict[str, int] = {}
    for raw, count in result.all():
        canonical = normalize_prefecture(raw or "")
        if canonical:
            counts[canonical] = counts.get(canonical, 0) + int(count)
    return counts
