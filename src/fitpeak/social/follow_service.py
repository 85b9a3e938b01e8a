"""Follow edges and the notifications a new follow triggers."""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.models import Follow, Profile
from fitpeak.errors import AuthenticationRequired, ConflictError, InvalidArgument
from fitpeak.outcome import ActionOutcome
from fitpeak.social.notification_fanout import NotificationFanOut, dispatch_best_effort, display_name
from fitpeak.social.notification_service import try_notify

logger = logging.getLogger(__name__)


def _require_actor(actor_id: str | None) -> str:
    if not actor_id:
        raise AuthenticationRequired()
    return actor_id


async def follow_user(
    db: AsyncSession,
    actor_id: str | None,
    target_id: str,
    fanout: NotificationFanOut,
) -> ActionOutcome[None]:
    """Insert the follow edge, then notify the target (best-effort).

    A duplicate edge is not an upsert: the backend's refusal is surfaced as
    ``ConflictError`` with its raw message.
    """
    follower_id = _require_actor(actor_id)
    if follower_id == target_id:
        raise InvalidArgument("自分自身をフォローできません")

    try:
        async with db.begin_nested():
            await db.execute(insert(Follow).values(follower_id=follower_id, following_id=target_id))
    except IntegrityError as e:
        raise ConflictError(str(e.orig)) from e

    outcome: ActionOutcome[None] = ActionOutcome(result=None)
    follower = await db.get(Profile, follower_id)
    outcome.warn(
        await try_notify(
            db,
            target_id,
            "follow",
            f"{display_name(follower)}さんがあなたをフォローしました",
            sender_id=follower_id,
            link=f"/profile?u={follower_id}",
        )
    )
    outcome.warn(await dispatch_best_effort("follow", fanout.notify_follow(db, target_id, follower_id)))
    if outcome.degraded:
        logger.warning("Follow %s -> %s saved with warnings: %s", follower_id, target_id, outcome.warnings)
    return outcome


async def unfollow_user(db: AsyncSession, actor_id: str | None, target_id: str) -> None:
    """Delete the follow edge. Deleting a missing edge is not an error."""
    follower_id = _require_actor(actor_id)
    await db.execute(delete(Follow).where(Follow.follower_id == follower_id, Follow.following_id == target_id))
    await db.flush()


async def is_following(db: AsyncSession, follower_id: str, following_id: str) -> bool:
    result = await db.execute(
        select(Follow.follower_id).where(Follow.follower_id == follower_id, Follow.following_id == following_id)
    )
    return result.first() is not None


async def count_followers(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(select(func.count()).select_from(Follow).where(Follow.following_id == user_id))
    return result.scalar_one()


async def count_following(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(select(func.count()).select_from(Follow).where(Follow.follower_id == user_id))
    return result.scalar_one()


async def list_followers(db: AsyncSession, user_id: str, exclude: set[str] | None = None) -> list[Profile]:
    """Profiles following ``user_id``, newest first."""
    result = await db.execute(
        select(Profile)
        .join(Follow, Follow.follower_id == Profile.id)
        .where(Follow.following_id == user_id)
        .order_by(Follow.created_at.desc())
    )
    return [p for p in result.scalars().all() if not exclude or p.id not in exclude]


async def list_following(db: AsyncSession, user_id: str, exclude: set[str] | None = None) -> list[Profile]:
    """Profiles ``user_id`` follows, newest first."""
    result = await db.execute(
        select(Profile)
        .join(Follow, Follow.following_id == Profile.id)
        .where(Follow.follower_id == user_id)
        .order_by(Follow.created_at.desc())
    )
    return [p for p in result.scalars().all() if not exclude or p.id not in exclude]
