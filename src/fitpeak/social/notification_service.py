"""In-app notification records.

Notifications are written only by server-side actions (follow, chat message,
recruitment events) and read or marked read by their recipient.

Types: follow, message, apply, approve, cancel
"""

from __future__ import annotations

import logging

from sqlalchemy import ColumnElement, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.base import utcnow
from fitpeak.db.models import Notification

logger = logging.getLogger(__name__)

VALID_TYPES = {"follow", "message", "apply", "approve", "cancel"}


def _inbox(user_id: str, *, unread: bool = False) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = [Notification.user_id == user_id]
    if unread:
        clauses.append(Notification.is_read.is_(False))
    return clauses


async def create_notification(
    db: AsyncSession,
    user_id: str,
    type_: str,
    content: str,
    sender_id: str | None = None,
    link: str | None = None,
) -> Notification:
    """Create a notification for ``user_id``."""
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {VALID_TYPES}")

    notification = Notification(
        user_id=user_id,
        sender_id=sender_id,
        type=type_,
        content=content,
        link=link,
        is_read=False,
        created_at=utcnow(),
    )
    db.add(notification)
    await db.flush()
    return notification


async def try_notify(
    db: AsyncSession,
    user_id: str,
    type_: str,
    content: str,
    sender_id: str | None = None,
    link: str | None = None,
) -> str | None:
    """Best-effort ``create_notification`` inside a savepoint.

    Returns ``None`` on success, or a warning string when the write failed.
    The surrounding transaction is left intact either way.
    """
    try:
        async with db.begin_nested():
            await create_notification(db, user_id, type_, content, sender_id=sender_id, link=link)
    except SQLAlchemyError:
        logger.warning("Failed to create %s notification for %s", type_, user_id, exc_info=True)
        return f"notification:{type_}:{user_id}"
    return None


async def get_notifications(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Notification], int]:
    """One page of the inbox, newest first, plus the inbox size."""
    total = await db.scalar(select(func.count()).select_from(Notification).where(*_inbox(user_id)))
    result = await db.scalars(
        select(Notification)
        .where(*_inbox(user_id))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.all()), total or 0


async def mark_as_read(db: AsyncSession, user_id: str, notification_id: int) -> bool:
    """False when the id does not exist in this user's inbox."""
    result = await db.execute(
        update(Notification).where(Notification.id == notification_id, *_inbox(user_id)).values(is_read=True)
    )
    await db.flush()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(update(Notification).where(*_inbox(user_id, unread=True)).values(is_read=True))
    await db.flush()
    return result.rowcount


async def get_unread_count(db: AsyncSession, user_id: str) -> int:
    count = await db.scalar(select(func.count()).select_from(Notification).where(*_inbox(user_id, unread=True)))
    return count or 0
