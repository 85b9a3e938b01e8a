"""Group endpoints: /api/v1/groups/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.auth.dependencies import get_current_user_id, get_optional_user_id
from fitpeak.database import get_session
from fitpeak.db.models import Group
from fitpeak.groups.schemas import (
    CreateGroupRequest,
    GroupDetailResponse,
    GroupListResponse,
    GroupResponse,
    UpdateGroupRequest,
)
from fitpeak.groups.service import (
    GROUP_CATEGORIES,
    create_group,
    delete_group,
    get_group,
    is_member,
    join_group,
    leave_group,
    list_groups,
    list_members,
    list_user_groups,
    member_count,
    update_group,
)
from fitpeak.sanitizer import ensure_list
from fitpeak.social.safety_service import get_hidden_user_ids
from fitpeak.users.router import profile_summary

router = APIRouter(prefix="/api/v1/groups", tags=["Groups"])


def _group_response(group: Group, members: int = 0) -> GroupResponse:
    return GroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        category=group.category,
        prefecture=group.prefecture,
        created_by=group.created_by,
        is_private=group.is_private,
        chat_room_id=group.chat_room_id,
        header_url=group.header_url,
        member_count=members,
        created_at=group.created_at,
    )


@router.get("/categories", response_model=list[str])
async def get_categories() -> list[str]:
    return list(GROUP_CATEGORIES)


@router.post("", response_model=GroupResponse, status_code=201)
async def create(
    body: CreateGroupRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> GroupResponse:
    group = await create_group(db, user_id, **body.model_dump())
    await db.commit()
    return _group_response(group, 1)


@router.get("", response_model=GroupListResponse)
async def list_all(
    category: str | None = Query(None),
    prefecture: str | None = Query(None),
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> GroupListResponse:
    hidden = await get_hidden_user_ids(db, user_id) if user_id else set()
    rows = await list_groups(db, category=category, prefecture=prefecture, exclude_creators=hidden)
    return GroupListResponse(groups=[_group_response(g, n) for g, n in rows], total=len(rows))


@router.get("/mine", response_model=GroupListResponse)
async def list_mine(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> GroupListResponse:
    groups = await list_user_groups(db, user_id)
    return GroupListResponse(
        groups=[_group_response(g, await member_count(db, g.id)) for g in groups],
        total=len(groups),
    )


@router.get("/{group_id}", response_model=GroupDetailResponse)
async def detail(
    group_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> GroupDetailResponse:
    """Group with its members (blocked users left out)."""
    group = await get_group(db, group_id)
    hidden = await get_hidden_user_ids(db, user_id) if user_id else set()
    members = ensure_list(await list_members(db, group_id))
    base = _group_response(group, len(members))
    return GroupDetailResponse(
        **base.model_dump(),
        members=[profile_summary(p) for p in members if p.id not in hidden],
        is_member=bool(user_id) and await is_member(db, group_id, user_id),
    )


@router.patch("/{group_id}", response_model=GroupResponse)
async def update(
    group_id: str,
    body: UpdateGroupRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> GroupResponse:
    group = await update_group(db, user_id, group_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return _group_response(group, await member_count(db, group_id))


@router.delete("/{group_id}")
async def delete(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await delete_group(db, user_id, group_id)
    await db.commit()
    return {}


@router.post("/{group_id}/join")
async def join(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await join_group(db, user_id, group_id)
    await db.commit()
    return {}


@router.post("/{group_id}/leave")
async def leave(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await leave_group(db, user_id, group_id)
    await db.commit()
    return {}
