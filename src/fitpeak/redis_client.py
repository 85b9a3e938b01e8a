"""Optional Redis connection pool (rate limiting and readiness only)."""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool. An empty URL leaves Redis disabled."""
    global _pool  # noqa: PLW0603
    if not url:
        _pool = None
        return
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def redis_enabled() -> bool:
    return _pool is not None


def get_redis() -> redis.Redis:
    """Get the Redis client.

    Raises:
        RuntimeError: When Redis is disabled or not yet initialized.
    """
    if _pool is None:
        msg = "Redis not initialized. Set FITPEAK_REDIS_URL to enable it."
        raise RuntimeError(msg)
    return _pool
