"""Notification fan-out: one event, several channels.

For each event the recipient's contact identity is resolved through an
administrative lookup on ``users``, a fixed template is rendered, the email
is sent, and a LINE push goes out when the recipient has linked LINE.

- No resolvable email is a hard precondition failure (``NotFoundError``).
- Email failure is surfaced (``EmailDeliveryError``).
- Push failure is always swallowed and recorded on the ``DeliveryReport``.

There is no de-duplication: calling an event twice sends it twice.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.config import get_settings
from fitpeak.db.models import Profile, User
from fitpeak.email.service import EmailService, get_email_service
from fitpeak.errors import EmailDeliveryError, NotFoundError
from fitpeak.social.line_push import LinePushClient, PushResult

logger = logging.getLogger(__name__)

DEFAULT_SENDER_NAME = "誰か"
DEFAULT_GROUP_NAME = "グループ"
DEFAULT_RECRUITMENT_TITLE = "募集"


@dataclass(frozen=True)
class RecipientContact:
    user_id: str
    email: str
    line_user_id: str | None = None


@dataclass
class DeliveryReport:
    """What actually went out for one event."""

    email_sent: bool
    push: PushResult
    warnings: list[str] = field(default_factory=list)


def display_name(profile: Profile | None, default: str = DEFAULT_SENDER_NAME) -> str:
    """Nickname, else username, else ``default``."""
    if profile is None:
        return default
    return profile.nickname or profile.username or default


class NotificationFanOut:
    """Email + LINE push dispatch for follow, chat and recruitment events."""

    def __init__(self, email: EmailService, push: LinePushClient, app_url: str = "") -> None:
        self.email = email
        self.push = push
        self.app_url = app_url.rstrip("/")

    def _link(self, path: str) -> str | None:
        return f"{self.app_url}{path}" if self.app_url else None

    async def resolve_contact(self, db: AsyncSession, user_id: str, not_found: str) -> RecipientContact:
        """Administrative lookup of a user's email and LINE id.

        Raises:
            NotFoundError: No such user, or the user has no email.
        """
        result = await db.execute(select(User.email, User.line_user_id).where(User.id == user_id))
        row = result.one_or_none()
        if row is None or not row.email:
            raise NotFoundError(not_found)
        return RecipientContact(user_id=user_id, email=row.email, line_user_id=row.line_user_id)

    async def _deliver(
        self,
        contact: RecipientContact,
        template_name: str,
        context: dict[str, str],
        push_text: str,
        push_path: str,
    ) -> DeliveryReport:
        sent = await self.email.send_template(contact.email, template_name, context)
        if not sent:
            logger.error("Email delivery failed for %s (%s)", contact.user_id, template_name)
            raise EmailDeliveryError()

        push = await self.push.push_text(contact.line_user_id, push_text, self._link(push_path))
        report = DeliveryReport(email_sent=True, push=push)
        if push.status == "error":
            logger.warning("LINE push for %s failed: %s", contact.user_id, push.detail)
            report.warnings.append(f"line_push:{push.detail}")
        return report

    async def notify_follow(self, db: AsyncSession, following_id: str, follower_id: str) -> DeliveryReport:
        """``follower_id`` started following ``following_id``."""
        contact = await self.resolve_contact(db, following_id, "Followed user not found or has no email")
        follower = await db.get(Profile, follower_id)
        name = display_name(follower)
        return await self._deliver(
            contact,
            "follow",
            {"follower_name": name},
            f"【FITPEAK】{name}さんがあなたをフォローしました。",
            "/dashboard/notifications",
        )

    async def notify_chat_message(
        self,
        db: AsyncSession,
        recipient_user_id: str,
        sender_nickname: str | None = None,
        is_group: bool = False,
        group_name: str | None = None,
        conversation_id: str | None = None,
    ) -> DeliveryReport:
        """New message in a 1:1 or group room."""
        contact = await self.resolve_contact(db, recipient_user_id, "Recipient not found or has no email")
        sender = sender_nickname or DEFAULT_SENDER_NAME
        path = f"/dashboard/messages/{conversation_id}" if conversation_id else "/dashboard/messages"
        if is_group:
            group = group_name or DEFAULT_GROUP_NAME
            return await self._deliver(
                contact,
                "group_message",
                {"sender_name": sender, "group_name": group},
                f"【FITPEAK】{sender}さんが「{group}」でメッセージを送信しました。",
                path,
            )
        return await self._deliver(
            contact,
            "individual_message",
            {"sender_name": sender},
            f"【FITPEAK】{sender}さんからメッセージが届きました。",
            path,
        )

    async def notify_recruitment_apply(
        self,
        db: AsyncSession,
        creator_id: str,
        recruitment_title: str | None = None,
        applicant_nickname: str | None = None,
        recruitment_id: str | None = None,
    ) -> DeliveryReport:
        """Someone applied to ``creator_id``'s recruitment."""
        contact = await self.resolve_contact(db, creator_id, "Creator not found or has no email")
        applicant = applicant_nickname or DEFAULT_SENDER_NAME
        title = recruitment_title or DEFAULT_RECRUITMENT_TITLE
        path = f"/dashboard/recruit/manage?r={recruitment_id}" if recruitment_id else "/dashboard/recruit/manage"
        return await self._deliver(
            contact,
            "recruitment_apply",
            {"applicant_name": applicant, "recruitment_title": title},
            f"【FITPEAK】{applicant}さんから「{title}」への参加申請が届きました。",
            path,
        )

    async def notify_participation_approved(
        self,
        db: AsyncSession,
        applicant_id: str,
        recruitment_title: str,
        chat_room_id: str | None = None,
    ) -> DeliveryReport:
        """The owner approved ``applicant_id``'s application."""
        contact = await self.resolve_contact(db, applicant_id, "Applicant not found or has no email")
        path = f"/dashboard/messages/{chat_room_id}" if chat_room_id else "/dashboard/recruit"
        return await self._deliver(
            contact,
            "participation_approved",
            {"recruitment_title": recruitment_title},
            f"【FITPEAK】「{recruitment_title}」への参加が承認されました。",
            path,
        )


async def dispatch_best_effort(label: str, coro: Awaitable[DeliveryReport]) -> str | None:
    """Await a fan-out call from inside a primary action.

    The primary action has already been written; any failure here, including
    a missing email or a failed send, becomes a warning string instead.
    """
    try:
        report = await coro
    except Exception:
        logger.warning("%s notification dispatch failed", label, exc_info=True)
        return f"{label}_notification_failed"
    if report.warnings:
        return ";".join(report.warnings)
    return None


def get_fanout() -> NotificationFanOut:
    """FastAPI dependency: fan-out wired from settings."""
    settings = get_settings()
    return NotificationFanOut(
        email=get_email_service(),
        push=LinePushClient(settings.line_messaging_channel_access_token),
        app_url=settings.app_url,
    )
