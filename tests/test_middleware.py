"""Middleware tests: request ID, rate limiting, CORS, error shape."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from tests.conftest import auth_headers


def _fake_redis(counts: list[int]) -> MagicMock:
    """Redis stub whose pipeline returns successive INCR results."""
    pipe = MagicMock()
    pipe.execute = AsyncMock(side_effect=[[n, True] for n in counts])
    redis = MagicMock()
    redis.pipeline.return_value = pipe
    return redis


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_rate_limit_headers_and_block(client: AsyncClient, monkeypatch) -> None:
    redis = _fake_redis([1, 101])
    monkeypatch.setattr("fitpeak.middleware.rate_limit.redis_enabled", lambda: True)
    monkeypatch.setattr("fitpeak.middleware.rate_limit.get_redis", lambda: redis)

    first = await client.get("/api/v1/reports/reasons")
    assert first.headers["x-ratelimit-remaining"] == "99"
    assert first.headers["x-ratelimit-limit"] == "100"

    blocked = await client.get("/api/v1/reports/reasons")
    assert blocked.status_code == 429
    assert blocked.headers["retry-after"] == "60"
    assert "error" in blocked.json()


@pytest.mark.asyncio
async def test_rate_limit_fails_open(client: AsyncClient, monkeypatch) -> None:
    redis = MagicMock()
    redis.pipeline.return_value.execute = AsyncMock(side_effect=RedisConnectionError("down"))
    monkeypatch.setattr("fitpeak.middleware.rate_limit.redis_enabled", lambda: True)
    monkeypatch.setattr("fitpeak.middleware.rate_limit.get_redis", lambda: redis)

    response = await client.get("/api/v1/reports/reasons")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(client: AsyncClient, monkeypatch) -> None:
    redis = _fake_redis([])
    monkeypatch.setattr("fitpeak.middleware.rate_limit.redis_enabled", lambda: True)
    monkeypatch.setattr("fitpeak.middleware.rate_limit.get_redis", lambda: redis)
    response = await client.get("/health")
    assert response.status_code == 200
    redis.pipeline.assert_not_called()


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for configured origin."""
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


@pytest.mark.asyncio
async def test_cors_preflight_allows_put_and_caches(client: AsyncClient) -> None:
    response = await client.options(
        "/api/v1/users/me",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "PUT"},
    )
    assert response.status_code == 200
    assert "PUT" in response.headers["access-control-allow-methods"]
    assert response.headers["access-control-max-age"] == "600"


@pytest.mark.asyncio
async def test_cors_exposes_request_id(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"Origin": "http://localhost:3000"})
    exposed = response.headers["access-control-expose-headers"]
    assert "X-Request-Id" in exposed
    assert "X-RateLimit-Remaining" in exposed


@pytest.mark.asyncio
async def test_404_returns_error_body(client: AsyncClient) -> None:
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


@pytest.mark.asyncio
async def test_validation_error_shape(client: AsyncClient) -> None:
    response = await client.post("/api/v1/reports", json={"type": "user"}, headers=auth_headers("someone"))
    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "Validation error"
    assert any(err["loc"][-1] == "target_id" for err in data["errors"])
