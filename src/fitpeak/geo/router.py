"""Map endpoints: users by prefecture and per-prefecture counts."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.database import get_session
from fitpeak.geo.prefectures import REGION_LABELS, get_prefectures_by_region
from fitpeak.geo.service import get_prefecture_counts, get_prefecture_users

router = APIRouter(prefix="/api", tags=["Geography"])


class PrefectureUser(BaseModel):
    id: str
    nickname: str | None = None
    username: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    prefecture: str | None = None
    created_at: datetime | None = None


class PrefectureUsersResponse(BaseModel):
    users: list[PrefectureUser]


class PrefectureCountsResponse(BaseModel):
    counts: dict[str, int]


class RegionResponse(BaseModel):
    key: str
    label: str
    prefectures: list[str]


@router.get("/prefecture-users", response_model=PrefectureUsersResponse)
async def prefecture_users(
    prefecture: str | None = Query(None),
    db: AsyncSession = Depends(get_session),
) -> PrefectureUsersResponse:
    users = await get_prefecture_users(db, prefecture)
    return PrefectureUsersResponse(users=[PrefectureUser(**u) for u in users])


@router.get("/prefecture-counts", response_model=PrefectureCountsResponse)
async def prefecture_counts(db: AsyncSession = Depends(get_session)) -> PrefectureCountsResponse:
    return PrefectureCountsResponse(counts=await get_prefecture_counts(db))


@router.get("/regions", response_model=list[RegionResponse])
async def regions() -> list[RegionResponse]:
    return [
        RegionResponse(
            key=key,
            label=label,
            prefectures=get_prefectures_by_region(key),
        )
        for key, label in REGION_LABELS.items()
    ]
