"""JWT session token tests."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from fitpeak.auth.jwt import create_access_token, verify_token
from fitpeak.config import get_settings


class TestAccessTokens:
    def test_roundtrip(self):
        payload = verify_token(create_access_token("user-1"))
        assert payload["sub"] == "user-1"
        assert payload["auth_method"] == "line"
        assert payload["type"] == "access"

    def test_expired_token(self):
        settings = get_settings()
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "u", "type": "access", "iss": settings.jwt_issuer, "iat": past, "exp": past + timedelta(hours=1)},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="Token has expired"):
            verify_token(token)

    def test_wrong_type(self):
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(create_access_token("u"), expected_type="refresh")

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "u", "type": "access", "iss": "fitpeak"}, "not-the-secret", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)


@pytest.mark.asyncio
async def test_invalid_bearer_is_401(client) -> None:
    response = await client.get("/api/v1/notifications", headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401
    assert "error" in response.json()
