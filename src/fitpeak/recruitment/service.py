"""Workout-partner recruitment posts and their participation workflow.

Participation states per (recruitment, user):

    pending -> approved | rejected
    approved -> withdrawn

Terminal states never return to pending. Approval adds the applicant to the
recruitment's chat room; withdrawal removes them. Notifications on apply,
approve, withdraw and delete are best-effort and never undo the transition.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.base import utcnow
from fitpeak.db.models import Profile, Recruitment, RecruitmentParticipant
from fitpeak.errors import ConflictError, InvalidArgument, NotFoundError, PermissionDenied
from fitpeak.geo.prefectures import get_prefecture_match_values, normalize_prefecture
from fitpeak.messaging.conversations import add_participant, create_conversation, delete_room, remove_participant
from fitpeak.outcome import ActionOutcome
from fitpeak.sanitizer import ensure_list
from fitpeak.social.notification_fanout import NotificationFanOut, dispatch_best_effort, display_name
from fitpeak.social.notification_service import try_notify

logger = logging.getLogger(__name__)

BODY_PARTS = ("all", "chest", "back", "legs", "shoulders", "arms", "full")
LEVELS = ("beginner", "intermediate", "advanced", "competitor")
STATUSES = ("open", "closed")
SORT_ORDERS = ("newest", "date_nearest", "date_furthest")

# from-state -> allowed to-states
TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("approved", "rejected"),
    "approved": ("withdrawn",),
    "rejected": (),
    "withdrawn": (),
}


def _validate(target_body_part: str | None = None, level: str | None = None, status: str | None = None) -> None:
    if target_body_part is not None and target_body_part not in BODY_PARTS:
        raise InvalidArgument(f"Invalid body part: {target_body_part}")
    if level is not None and level not in LEVELS:
        raise InvalidArgument(f"Invalid level: {level}")
    if status is not None and status not in STATUSES:
        raise InvalidArgument(f"Invalid status: {status}")


async def get_recruitment(db: AsyncSession, recruitment_id: str) -> Recruitment:
    recruitment = await db.get(Recruitment, recruitment_id)
    if recruitment is None:
        raise NotFoundError("募集が見つかりません")
    return recruitment


async def _get_owned(db: AsyncSession, user_id: str, recruitment_id: str) -> Recruitment:
    recruitment = await get_recruitment(db, recruitment_id)
    if recruitment.user_id != user_id:
        raise PermissionDenied()
    return recruitment


async def _get_participation(db: AsyncSession, recruitment_id: str, user_id: str) -> RecruitmentParticipant:
    participation = await db.get(RecruitmentParticipant, (recruitment_id, user_id))
    if participation is None:
        raise NotFoundError("参加申請が見つかりません")
    return participation


def _transition(participation: RecruitmentParticipant, to_status: str) -> None:
    if to_status not in TRANSITIONS.get(participation.status, ()):
        raise InvalidArgument(f"Cannot change participation from {participation.status} to {to_status}")
    participation.status = to_status
    participation.updated_at = utcnow()


async def create_recruitment(
    db: AsyncSession,
    user_id: str,
    title: str,
    event_date: datetime,
    description: str | None = None,
    target_body_part: str | None = None,
    deadline_at: datetime | None = None,
    location: str | None = None,
    level: str | None = None,
) -> Recruitment:
    """Create an open post and its chat room; the owner joins the room."""
    _validate(target_body_part, level)
    room = await create_conversation(db, user_id, kind="recruitment")
    recruitment = Recruitment(
        user_id=user_id,
        title=title,
        description=description,
        target_body_part=target_body_part,
        event_date=event_date,
        deadline_at=deadline_at,
        location=location,
        level=level,
        status="open",
        chat_room_id=room.id,
    )
    db.add(recruitment)
    await db.flush()
    logger.info("Recruitment created: %s (id=%s, owner=%s)", title, recruitment.id, user_id)
    return recruitment


async def update_recruitment(db: AsyncSession, user_id: str, recruitment_id: str, changes: dict[str, Any]) -> Recruitment:
    """Owner-only partial update (including closing the post)."""
    recruitment = await _get_owned(db, user_id, recruitment_id)
    _validate(changes.get("target_body_part"), changes.get("level"), changes.get("status"))
    for key, value in changes.items():
        setattr(recruitment, key, value)
    recruitment.updated_at = utcnow()
    await db.flush()
    return recruitment


async def list_open_recruitments(
    db: AsyncSession,
    body_part: str | None = None,
    level: str | None = None,
    sort: str = "newest",
    exclude_owners: set[str] | None = None,
) -> list[tuple[Recruitment, Profile | None]]:
    """Open posts with their owner's profile."""
    query = (
        select(Recruitment, Profile)
        .outerjoin(Profile, Profile.id == Recruitment.user_id)
        .where(Recruitment.status == "open")
    )
    if body_part and body_part != "all":
        query = query.where(Recruitment.target_body_part == body_part)
    if level and level != "all":
        query = query.where(Recruitment.level == level)
    if exclude_owners:
        query = query.where(Recruitment.user_id.not_in(exclude_owners))
    if sort == "date_nearest":
        query = query.order_by(Recruitment.event_date.asc())
    elif sort == "date_furthest":
        query = query.order_by(Recruitment.event_date.desc())
    else:
        query = query.order_by(Recruitment.created_at.desc())
    result = await db.execute(query)
    return [(r, p) for r, p in result.all()]


async def recommended_recruitments(
    db: AsyncSession,
    user_id: str,
    limit: int = 10,
    exclude_owners: set[str] | None = None,
) -> list[tuple[Recruitment, Profile | None]]:
    """Open posts whose location mentions the caller's prefecture or whose body part
    the caller trains, newest first. Without either, simply the newest open posts.
    """
    me = await db.get(Profile, user_id)
    prefecture = normalize_prefecture((me.prefecture if me else None) or "")
    parts = sorted(
        {item for item in ensure_list(me.exercises if me else None) if isinstance(item, str) and item.strip()}
    )

    area = get_prefecture_match_values(prefecture) if prefecture else []
    matches = [Recruitment.location.ilike(f"%{value}%") for value in area]
    if parts:
        matches.append(Recruitment.target_body_part.in_(parts))

    query = (
        select(Recruitment, Profile)
        .outerjoin(Profile, Profile.id == Recruitment.user_id)
        .where(Recruitment.status == "open")
    )
    if matches:
        query = query.where(or_(*matches))
    if exclude_owners:
        query = query.where(Recruitment.user_id.not_in(exclude_owners))
    result = await db.execute(query.order_by(Recruitment.created_at.desc()).limit(limit))
    return [(r, p) for r, p in result.all()]


async def list_my_recruitments(db: AsyncSession, user_id: str) -> list[Recruitment]:
    result = await db.execute(
        select(Recruitment).where(Recruitment.user_id == user_id).order_by(Recruitment.created_at.desc())
    )
    return list(result.scalars().all())


async def list_participants(
    db: AsyncSession,
    recruitment_id: str,
    status: str | None = None,
) -> list[tuple[RecruitmentParticipant, Profile | None]]:
    query = (
        select(RecruitmentParticipant, Profile)
        .outerjoin(Profile, Profile.id == RecruitmentParticipant.user_id)
        .where(RecruitmentParticipant.recruitment_id == recruitment_id)
        .order_by(RecruitmentParticipant.created_at)
    )
    if status:
        query = query.where(RecruitmentParticipant.status == status)
    result = await db.execute(query)
    return [(rp, p) for rp, p in result.all()]


async def count_approved(db: AsyncSession, recruitment_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(RecruitmentParticipant)
        .where(RecruitmentParticipant.recruitment_id == recruitment_id, RecruitmentParticipant.status == "approved")
    )
    return result.scalar_one()


async def my_participation_statuses(db: AsyncSession, user_id: str) -> dict[str, str]:
    """recruitment id -> the caller's participation status."""
    result = await db.execute(
        select(RecruitmentParticipant.recruitment_id, RecruitmentParticipant.status).where(
            RecruitmentParticipant.user_id == user_id
        )
    )
    return {rid: status for rid, status in result.all() if status in TRANSITIONS}


async def apply(
    db: AsyncSession,
    user_id: str,
    recruitment_id: str,
    fanout: NotificationFanOut,
) -> ActionOutcome[RecruitmentParticipant]:
    """Apply to an open post (pending); the owner is notified."""
    recruitment = await get_recruitment(db, recruitment_id)
    if recruitment.user_id == user_id:
        raise InvalidArgument("自分の募集には応募できません")
    if recruitment.status != "open":
        raise InvalidArgument("この募集は締め切られています")
    if await db.get(RecruitmentParticipant, (recruitment_id, user_id)) is not None:
        raise ConflictError("既に応募しています")

    participation = RecruitmentParticipant(recruitment_id=recruitment_id, user_id=user_id, status="pending")
    db.add(participation)
    await db.flush()

    outcome = ActionOutcome(result=participation)
    name = display_name(await db.get(Profile, user_id))
    outcome.warn(
        await try_notify(
            db,
            recruitment.user_id,
            "apply",
            f"{name}さんから応募がありました",
            sender_id=user_id,
            link=f"/dashboard/recruit/manage?r={recruitment_id}",
        )
    )
    outcome.warn(
        await dispatch_best_effort(
            "recruitment_apply",
            fanout.notify_recruitment_apply(
                db,
                recruitment.user_id,
                recruitment_title=recruitment.title,
                applicant_nickname=name,
                recruitment_id=recruitment_id,
            ),
        )
    )
    return outcome


async def approve(
    db: AsyncSession,
    owner_id: str,
    recruitment_id: str,
    applicant_id: str,
    fanout: NotificationFanOut,
) -> ActionOutcome[RecruitmentParticipant]:
    """pending -> approved; the applicant joins the chat room and is notified."""
    recruitment = await _get_owned(db, owner_id, recruitment_id)
    participation = await _get_participation(db, recruitment_id, applicant_id)
    _transition(participation, "approved")

    if recruitment.chat_room_id is None:
        room = await create_conversation(db, owner_id, kind="recruitment")
        recruitment.chat_room_id = room.id
    await add_participant(db, recruitment.chat_room_id, applicant_id)
    await db.flush()

    outcome = ActionOutcome(result=participation)
    outcome.warn(
        await try_notify(
            db,
            applicant_id,
            "approve",
            f"「{recruitment.title}」への参加が承認されました",
            sender_id=owner_id,
            link=f"/dashboard/messages/{recruitment.chat_room_id}",
        )
    )
    outcome.warn(
        await dispatch_best_effort(
            "participation_approved",
            fanout.notify_participation_approved(
                db, applicant_id, recruitment.title, chat_room_id=recruitment.chat_room_id
            ),
        )
    )
    return outcome


async def reject(db: AsyncSession, owner_id: str, recruitment_id: str, applicant_id: str) -> RecruitmentParticipant:
    """pending -> rejected. No notification."""
    await _get_owned(db, owner_id, recruitment_id)
    participation = await _get_participation(db, recruitment_id, applicant_id)
    _transition(participation, "rejected")
    await db.flush()
    return participation


async def withdraw(db: AsyncSession, user_id: str, recruitment_id: str) -> ActionOutcome[RecruitmentParticipant]:
    """approved -> withdrawn; leaves the chat room. The owner gets an in-app record only."""
    recruitment = await get_recruitment(db, recruitment_id)
    participation = await _get_participation(db, recruitment_id, user_id)
    _transition(participation, "withdrawn")
    if recruitment.chat_room_id:
        await remove_participant(db, recruitment.chat_room_id, user_id)
    await db.flush()

    outcome = ActionOutcome(result=participation)
    name = display_name(await db.get(Profile, user_id))
    outcome.warn(
        await try_notify(
            db,
            recruitment.user_id,
            "cancel",
            f"{name}さんが参加を辞退しました",
            sender_id=user_id,
            link=f"/dashboard/recruit/manage?r={recruitment_id}",
        )
    )
    return outcome


async def delete_recruitment(db: AsyncSession, owner_id: str, recruitment_id: str) -> ActionOutcome[None]:
    """Notify pending/approved participants, then remove the post and its chat room.

    Each notification is its own savepoint: a failure for one participant
    neither stops the loop nor the removal, and nothing already written is
    rolled back.
    """
    recruitment = await _get_owned(db, owner_id, recruitment_id)
    outcome: ActionOutcome[None] = ActionOutcome(result=None)

    participants = await db.execute(
        select(RecruitmentParticipant.user_id).where(
            RecruitmentParticipant.recruitment_id == recruitment_id,
            RecruitmentParticipant.status.in_(("pending", "approved")),
        )
    )
    for participant_id in participants.scalars().all():
        if participant_id == owner_id:
            continue
        outcome.warn(
            await try_notify(
                db,
                participant_id,
                "cancel",
                f"「{recruitment.title}」の募集が中止されました",
                sender_id=owner_id,
                link="/dashboard/recruit",
            )
        )

    room_id = recruitment.chat_room_id
    await db.execute(delete(RecruitmentParticipant).where(RecruitmentParticipant.recruitment_id == recruitment_id))
    await db.delete(recruitment)
    await db.flush()
    if room_id:
        await delete_room(db, room_id)
    logger.info("Recruitment deleted: %s (%d warnings)", recruitment_id, len(outcome.warnings))
    return outcome
