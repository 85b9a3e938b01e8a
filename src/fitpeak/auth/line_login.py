"""LINE Login (OAuth 2.0 authorization-code flow) bridge.

The provider proves the caller's LINE identity and email; this module maps
that to a local user and a session token. Linking LINE to an account that
already exists under the same email goes through a confirm interstitial.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
import jwt
import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.auth.jwt import verify_line_id_token
from fitpeak.config import get_settings
from fitpeak.db.base import utcnow
from fitpeak.db.models import Profile, User

logger = structlog.get_logger()

LINE_AUTH_URL = "https://access.line.me/oauth2/v2.1/authorize"
LINE_TOKEN_URL = "https://api.line.me/oauth2/v2.1/token"
LINE_SCOPE = "openid email profile"

STATE_COOKIE = "line_oauth_state"
NEXT_COOKIE = "line_auth_next"
CONFIRM_COOKIE = "line_confirm_token"
COOKIE_MAX_AGE = 60 * 10

DEFAULT_NEXT_PATH = "/dashboard"


class LineLoginError(Exception):
    """Login failed; ``code`` goes into the ``?error=`` redirect."""

    def __init__(self, code: str = "line_login_failed", reason: str = "") -> None:
        self.code = code
        self.reason = reason
        super().__init__(reason or code)


@dataclass(frozen=True)
class LineIdentity:
    line_user_id: str
    email: str


@dataclass(frozen=True)
class LinkedUser:
    user: User
    newly_linked_existing: bool


def generate_state() -> str:
    """48 hex chars."""
    return secrets.token_hex(24)


def callback_uri(app_url: str) -> str:
    return f"{app_url.rstrip('/')}/api/auth/callback/line"


def build_authorize_url(channel_id: str, redirect_uri: str, state: str) -> str:
    params = {
        "response_type": "code",
        "client_id": channel_id,
        "redirect_uri": redirect_uri,
        "state": state,
        "scope": LINE_SCOPE,
    }
    return f"{LINE_AUTH_URL}?{urlencode(params)}"


def is_safe_next_path(path: str | None) -> bool:
    """Only same-site absolute paths: one leading slash, not two."""
    return path is not None and path.startswith("/") and not path.startswith("//")


def build_login_url(app_url: str, access_token: str, next_path: str | None) -> str:
    target = next_path if is_safe_next_path(next_path) else DEFAULT_NEXT_PATH
    return f"{app_url.rstrip('/')}/auth/callback?{urlencode({'token': access_token, 'next': target})}"


class LineLoginClient:
    """Talks to the LINE token endpoint."""

    def __init__(self, channel_id: str, channel_secret: str, client: httpx.AsyncClient | None = None) -> None:
        self.channel_id = channel_id
        self.channel_secret = channel_secret
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.channel_id and self.channel_secret)

    async def _post_token(self, data: dict[str, str]) -> httpx.Response:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        if self._client is not None:
            return await self._client.post(LINE_TOKEN_URL, data=data, headers=headers, timeout=10.0)
        async with httpx.AsyncClient() as client:
            return await client.post(LINE_TOKEN_URL, data=data, headers=headers, timeout=10.0)

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        """Exchange an authorization code for an ID token.

        Raises:
            LineLoginError: Network error, non-2xx reply, or no ``id_token``.
        """
        try:
            response = await self._post_token(
                {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "client_id": self.channel_id,
                    "client_secret": self.channel_secret,
                }
            )
            response.raise_for_status()
            id_token = response.json().get("id_token")
        except (httpx.HTTPError, ValueError) as e:
            raise LineLoginError(reason=f"token exchange failed: {e}") from e
        if not id_token:
            raise LineLoginError(reason="no id_token in token response")
        return str(id_token)

    def verify_identity(self, id_token: str) -> LineIdentity:
        """
        Raises:
            LineLoginError: Invalid token, or ``line_email_required`` when the
                user did not grant the email scope.
        """
        try:
            payload = verify_line_id_token(id_token, self.channel_id, self.channel_secret)
        except jwt.InvalidTokenError as e:
            raise LineLoginError(reason=f"id token rejected: {e}") from e
        email = (payload.get("email") or "").strip()
        if not email:
            raise LineLoginError("line_email_required", "id token has no email")
        return LineIdentity(line_user_id=str(payload["sub"]), email=email)


def get_line_login_client() -> LineLoginClient:
    """FastAPI dependency."""
    settings = get_settings()
    return LineLoginClient(settings.line_channel_id, settings.line_channel_secret)


async def link_line_user(db: AsyncSession, identity: LineIdentity) -> LinkedUser:
    """Find the user by email (case-insensitive) and record the LINE id, or create one.

    New users are created with a confirmed email and an empty profile.
    """
    result = await db.execute(select(User).where(func.lower(User.email) == identity.email.lower()))
    user = result.scalar_one_or_none()
    now = utcnow()

    if user is not None:
        newly_linked = user.line_user_id != identity.line_user_id
        user.line_user_id = identity.line_user_id
        user.last_login = now
        await db.flush()
        logger.info("line_account_linked", user_id=user.id, newly_linked=newly_linked)
        return LinkedUser(user=user, newly_linked_existing=newly_linked)

    user = User(email=identity.email, email_confirmed=True, line_user_id=identity.line_user_id, last_login=now)
    db.add(user)
    await db.flush()
    db.add(Profile(id=user.id, exercises=[], achievements=[], certifications=[]))
    await db.flush()
    logger.info("line_user_created", user_id=user.id)
    return LinkedUser(user=user, newly_linked_existing=False)
