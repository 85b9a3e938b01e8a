"""Tests for email service and templates."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from fitpeak.config import Settings
from fitpeak.email.service import (
    _TEMPLATE_REGISTRY,
    BaseEmailProvider,
    EmailService,
    ResendProvider,
    SMTPProvider,
    build_provider,
)
from fitpeak.email.templates import (
    FOOTER_NOTE,
    follow_email,
    group_message_email,
    individual_message_email,
    participation_approved_email,
    recruitment_apply_email,
)


class TestEmailTemplates:
    def test_follow_email(self):
        subject, html, text = follow_email("Alice")
        assert subject == "【FITPEAK】Aliceさんがあなたをフォローしました"
        assert "Aliceさんがあなたをフォローしました。" in html
        assert text.endswith(FOOTER_NOTE)

    def test_individual_message_email(self):
        subject, _html, text = individual_message_email("Bob")
        assert subject == "【FITPEAK】Bobさんからメッセージが届きました"
        assert "Bob" in text

    def test_group_message_email(self):
        subject, html, _text = group_message_email("Bob", "Leg Day")
        assert subject == "【FITPEAK】グループ「Leg Day」で新しいメッセージが届きました"
        assert "Bobさん" in html

    def test_recruitment_apply_email(self):
        subject, _html, text = recruitment_apply_email("Carol", "Bench night")
        assert subject == "【FITPEAK】合トレに参加申請が届きました"
        assert "Carolさんから「Bench night」への参加申請が届きました。" in text

    def test_participation_approved_email(self):
        subject, _html, _text = participation_approved_email("Bench night")
        assert "Bench night" in subject

    def test_user_text_is_escaped_in_html(self):
        _subject, html, text = follow_email("<script>")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "<script>" in text


class TestEmailService:
    def test_template_dispatch(self):
        assert set(_TEMPLATE_REGISTRY) == {
            "follow",
            "individual_message",
            "group_message",
            "recruitment_apply",
            "participation_approved",
        }

    @pytest.mark.asyncio
    async def test_send_template_renders_and_sends(self):
        provider = AsyncMock(spec=BaseEmailProvider)
        provider.send.return_value = True
        service = EmailService(provider=provider)

        assert await service.send_template("a@example.com", "follow", {"follower_name": "Alice"}) is True
        to, subject, _html, _text = provider.send.await_args.args
        assert to == "a@example.com"
        assert subject == "【FITPEAK】Aliceさんがあなたをフォローしました"

    @pytest.mark.asyncio
    async def test_provider_failure_is_reported(self):
        provider = AsyncMock(spec=BaseEmailProvider)
        provider.send.return_value = False
        service = EmailService(provider=provider)
        assert await service.send_template("a@example.com", "individual_message", {"sender_name": "B"}) is False

    @pytest.mark.asyncio
    async def test_unknown_template(self):
        service = EmailService(provider=AsyncMock(spec=BaseEmailProvider))
        with pytest.raises(ValueError, match="Unknown template"):
            await service.send_template("a@example.com", "welcome", {})

    @pytest.mark.asyncio
    async def test_unconfigured_resend_skips(self):
        assert build_provider(Settings(email_provider="resend", resend_api_key="")) is None
        service = EmailService(provider=AsyncMock(spec=BaseEmailProvider))
        service.provider = None
        assert service.enabled is False
        assert await service.send_email("a@example.com", "s", "<p>h</p>", "t") is True


class TestProviders:
    def test_build_provider_by_name(self):
        assert isinstance(build_provider(Settings(email_provider="resend", resend_api_key="re_x")), ResendProvider)
        assert isinstance(build_provider(Settings(email_provider="SMTP")), SMTPProvider)
        with pytest.raises(ValueError, match="Unsupported email provider"):
            build_provider(Settings(email_provider="carrier-pigeon"))

    @pytest.mark.asyncio
    async def test_resend_request(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "msg_1"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = ResendProvider("re_key", "no-reply@fitpeak.test", "FITPEAK", client=client)

        assert await provider.send("a@example.com", "subject", "<p>h</p>", "t") is True
        request = seen[0]
        assert request.headers["authorization"] == "Bearer re_key"
        body = json.loads(request.content)
        assert body["from"] == "FITPEAK <no-reply@fitpeak.test>"
        assert body["to"] == ["a@example.com"]

    @pytest.mark.asyncio
    async def test_resend_rejection_returns_false(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(422, json={})))
        provider = ResendProvider("re_key", "no-reply@fitpeak.test", "FITPEAK", client=client)
        assert await provider.send("a@example.com", "s", "<p>h</p>", "t") is False

    def test_smtp_message_has_both_parts(self):
        provider = SMTPProvider("localhost", 587, "", "", "no-reply@fitpeak.test", "フィットピーク")
        message = provider.build_message("a@example.com", "件名", "<p>本文</p>", "本文")
        assert message.is_multipart()
        assert [part.get_content_type() for part in message.iter_parts()] == ["text/plain", "text/html"]
        assert message["From"].endswith("<no-reply@fitpeak.test>")
        assert provider.username is None
