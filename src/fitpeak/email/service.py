"""
Transactional email for notification fan-out.

Two providers: Resend (HTTP API, the default) and SMTP. With no Resend
API key configured the service runs without a provider and every send is
skipped and counted as delivered, so local setups work without mail.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from email.message import EmailMessage
from email.utils import formataddr
from functools import lru_cache

import httpx
import structlog

from fitpeak.config import Settings, get_settings
from fitpeak.email.templates import (
    follow_email,
    group_message_email,
    individual_message_email,
    participation_approved_email,
    recruitment_apply_email,
)

logger = structlog.get_logger()

Template = Callable[..., tuple[str, str, str]]

_TEMPLATE_REGISTRY: dict[str, Template] = {
    "follow": follow_email,
    "individual_message": individual_message_email,
    "group_message": group_message_email,
    "recruitment_apply": recruitment_apply_email,
    "participation_approved": participation_approved_email,
}


class BaseEmailProvider(ABC):
    """A channel that delivers one rendered message to one address."""

    name = "base"

    def __init__(self, from_address: str, from_name: str) -> None:
        # formataddr encodes non-ASCII display names (RFC 2047)
        self.sender = formataddr((from_name, from_address))

    @abstractmethod
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """Deliver the message. False on any delivery failure, never raises."""


class ResendProvider(BaseEmailProvider):
    name = "resend"
    API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(from_address, from_name)
        self._api_key = api_key
        self._client = client

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        payload = {"from": self.sender, "to": [to_email], "subject": subject, "html": html_body, "text": text_body}
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            if self._client is not None:
                response = await self._client.post(self.API_URL, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.post(self.API_URL, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("email_rejected", to=to_email, provider=self.name, status=exc.response.status_code)
            return False
        except httpx.HTTPError:
            logger.exception("email_send_failed", to=to_email, provider=self.name)
            return False
        logger.info("email_sent", to=to_email, provider=self.name, status=response.status_code)
        return True


class SMTPProvider(BaseEmailProvider):
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        super().__init__(from_address, from_name)
        self.host = host
        self.port = port
        self.username = username or None
        self.password = password or None
        self.use_tls = use_tls

    def build_message(self, to_email: str, subject: str, html_body: str, text_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")
        return message

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        import aiosmtplib

        message = self.build_message(to_email, subject, html_body, text_body)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                tls_context=ssl.create_default_context() if self.use_tls else None,
            )
        except (aiosmtplib.SMTPException, OSError):
            logger.exception("email_send_failed", to=to_email, provider=self.name)
            return False
        logger.info("email_sent", to=to_email, provider=self.name)
        return True


def build_provider(settings: Settings) -> BaseEmailProvider | None:
    """Pick the provider named in settings. None disables email."""
    provider_name = settings.email_provider.lower()
    if provider_name == "resend":
        if not settings.resend_api_key:
            return None
        return ResendProvider(settings.resend_api_key, settings.email_from_address, settings.email_from_name)
    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


class EmailService:
    def __init__(self, provider: BaseEmailProvider | None = None) -> None:
        self.provider = provider if provider is not None else build_provider(get_settings())

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        """True when delivered or skipped (no provider), False when the provider failed."""
        if self.provider is None:
            logger.info("email_skipped", to=to, subject=subject, reason="provider_not_configured")
            return True
        return await self.provider.send(to, subject, html_body, text_body)

    async def send_template(self, to: str, template_name: str, context: dict[str, str]) -> bool:
        """Render ``template_name`` with ``context`` and send it.

        Raises:
            ValueError: the template name is not registered.
        """
        try:
            template = _TEMPLATE_REGISTRY[template_name]
        except KeyError:
            msg = f"Unknown template: {template_name}"
            raise ValueError(msg) from None
        subject, html_body, text_body = template(**context)
        return await self.send_email(to, subject, html_body, text_body)


@lru_cache
def get_email_service() -> EmailService:
    """Process-wide email service built from current settings."""
    return EmailService()
