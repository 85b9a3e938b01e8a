"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fitpeak.auth.jwt import verify_token
from fitpeak.errors import AuthenticationRequired

_bearer = HTTPBearer(auto_error=False)


async def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> str | None:
    """
    Return the caller's user id, or ``None`` when no bearer token was sent.

    Services decide whether an anonymous caller is acceptable; a token that is
    present but invalid is always rejected with 401.
    """
    if credentials is None:
        return None
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return str(payload["sub"])


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> str:
    """Same as ``get_optional_user_id`` but anonymous callers get 401."""
    user_id = await get_optional_user_id(credentials)
    if user_id is None:
        raise AuthenticationRequired()
    return user_id
