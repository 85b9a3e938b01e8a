"""Blocks and reports.

Blocking is stored one-way but hides in both directions: if either user
blocked the other, neither sees the other in lists or profiles.
"""

from __future__ import annotations

from sqlalchemy import delete, insert, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.models import Block, Report
from fitpeak.errors import AuthenticationRequired, ConflictError, InvalidArgument

REPORT_TYPES = ("user", "recruitment", "group")

# value -> label shown in the report dialog
REPORT_REASONS: dict[str, str] = {
    "inappropriate": "不適切な内容",
    "spam": "スパム",
    "harassment": "攻撃的な言動・嫌がらせ",
    "fake": "虚偽・なりすまし",
    "other": "その他",
}


async def block_user(db: AsyncSession, actor_id: str | None, target_id: str) -> None:
    if not actor_id:
        raise AuthenticationRequired()
    if actor_id == target_id:
        raise InvalidArgument("自分自身をブロックできません")
    try:
        async with db.begin_nested():
            await db.execute(insert(Block).values(blocker_id=actor_id, blocked_id=target_id))
    except IntegrityError as e:
        raise ConflictError(str(e.orig)) from e


async def unblock_user(db: AsyncSession, actor_id: str | None, target_id: str) -> None:
    """Delete the block edge. Deleting a missing edge is not an error."""
    if not actor_id:
        raise AuthenticationRequired()
    await db.execute(delete(Block).where(Block.blocker_id == actor_id, Block.blocked_id == target_id))
    await db.flush()


async def is_blocked_between(db: AsyncSession, user_a: str, user_b: str) -> bool:
    """True if either user blocked the other."""
    result = await db.execute(
        select(Block.blocker_id).where(
            or_(
                (Block.blocker_id == user_a) & (Block.blocked_id == user_b),
                (Block.blocker_id == user_b) & (Block.blocked_id == user_a),
            )
        )
    )
    return result.first() is not None


async def get_hidden_user_ids(db: AsyncSession, user_id: str) -> set[str]:
    """Users ``user_id`` blocked plus users who blocked ``user_id``."""
    blocked = await db.execute(select(Block.blocked_id).where(Block.blocker_id == user_id))
    blockers = await db.execute(select(Block.blocker_id).where(Block.blocked_id == user_id))
    return set(blocked.scalars().all()) | set(blockers.scalars().all())


async def report_content(
    db: AsyncSession,
    actor_id: str | None,
    target_id: str,
    type_: str,
    reason: str,
    details: str | None = None,
) -> Report:
    """File a report. Repeated reports of the same target are all kept."""
    if not actor_id:
        raise AuthenticationRequired()
    if type_ not in REPORT_TYPES:
        raise InvalidArgument(f"Invalid report type: {type_}")
    # catalogue values come from the report form, anything else is kept as typed
    reason = reason.strip() or "other"

    report = Report(
        reporter_id=actor_id,
        target_id=target_id,
        type=type_,
        reason=reason,
        details=(details or "").strip() or None,
    )
    db.add(report)
    await db.flush()
    return report
