"""
HS256 JWT helpers.

Three kinds of token pass through here:

- session access tokens issued after login (``type == "access"``)
- LINE Login ID tokens, signed by LINE with the channel secret
- the short-lived LINE confirm-cookie token, signed with the service role key
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from fitpeak.config import get_settings

LINE_ISSUER = "https://access.line.me"


def create_access_token(user_id: str, auth_method: str = "line") -> str:
    """
    Create an access token for a logged-in user.

    Args:
        user_id: The user's id.
        auth_method: How the user authenticated.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "auth_method": auth_method,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a session token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or wrong type.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload


def verify_line_id_token(id_token: str, channel_id: str, channel_secret: str) -> dict[str, Any]:
    """Verify a LINE Login ID token (HS256 with the channel secret).

    Raises:
        jwt.InvalidTokenError: On bad signature, audience, issuer or expiry.
    """
    return jwt.decode(
        id_token,
        channel_secret,
        algorithms=["HS256"],
        audience=channel_id,
        issuer=LINE_ISSUER,
    )


def create_confirm_token(email: str, url: str, secret: str, ttl_seconds: int = 600) -> str:
    """Sign the ``{email, url, exp}`` payload carried by the LINE confirm cookie."""
    exp = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
    return jwt.encode({"email": email, "url": url, "exp": exp}, secret, algorithm="HS256")


def verify_confirm_token(token: str, secret: str) -> dict[str, Any]:
    """Decode a confirm-cookie token; ``url`` and ``email`` must be present.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or incomplete.
    """
    payload: dict[str, Any] = jwt.decode(token, secret, algorithms=["HS256"])
    if not payload.get("url") or not payload.get("email"):
        msg = "invalid payload"
        raise jwt.InvalidTokenError(msg)
    return payload
