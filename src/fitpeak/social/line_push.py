"""LINE Messaging API push client.

Push delivery is strictly best-effort: a missing channel token, an unlinked
recipient, an auth failure or a network error all end in a ``PushResult``
and a log line, never in an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

LINE_PUSH_URL = "https://api.line.me/v2/bot/message/push"


@dataclass(frozen=True)
class PushResult:
    """Outcome of one push attempt: ``sent``, ``skipped`` or ``error``."""

    status: str
    detail: str | None = None

    @property
    def sent(self) -> bool:
        return self.status == "sent"


def format_push_text(text: str, link: str | None = None) -> str:
    """Append the link on its own paragraph when one is given."""
    return f"{text}\n\n{link}" if link else text


class LinePushClient:
    """Sends text pushes to a LINE user id."""

    def __init__(
        self,
        channel_access_token: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.channel_access_token = channel_access_token
        self._client = client
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.channel_access_token)

    async def push_text(self, line_user_id: str | None, text: str, link: str | None = None) -> PushResult:
        if not self.enabled:
            return PushResult("skipped", "channel access token not configured")
        if not line_user_id:
            return PushResult("skipped", "recipient has no linked LINE account")

        payload = {
            "to": line_user_id,
            "messages": [{"type": "text", "text": format_push_text(text, link)}],
        }
        headers = {
            "Authorization": f"Bearer {self.channel_access_token}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = await self._client.post(LINE_PUSH_URL, json=payload, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(LINE_PUSH_URL, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("LINE push rejected with %s: %s", exc.response.status_code, exc.response.text)
            return PushResult("error", f"http {exc.response.status_code}")
        except httpx.HTTPError as exc:
            logger.warning("LINE push failed", exc_info=True)
            return PushResult("error", type(exc).__name__)
        return PushResult("sent")
