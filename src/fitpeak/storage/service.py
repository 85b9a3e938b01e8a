"""Image bucket registry.

Each bucket carries a size cap and a MIME allowlist for uploads;
``ensure_bucket`` creates the registry row on first use.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.db.models import StorageBucket

logger = structlog.get_logger()


@dataclass(frozen=True)
class BucketConfig:
    name: str
    public: bool
    file_size_limit: int
    allowed_mime_types: tuple[str, ...]


AVATAR_BUCKET = BucketConfig(
    name="avatars",
    public=True,
    file_size_limit=2 * 1024 * 1024,
    allowed_mime_types=("image/jpeg", "image/png", "image/webp"),
)


async def ensure_bucket(db: AsyncSession, bucket: BucketConfig) -> bool:
    """Create the bucket if missing. Returns True only when this call created it."""
    if await db.get(StorageBucket, bucket.name) is not None:
        return False
    try:
        async with db.begin_nested():
            db.add(
                StorageBucket(
                    name=bucket.name,
                    public=bucket.public,
                    file_size_limit=bucket.file_size_limit,
                    allowed_mime_types=list(bucket.allowed_mime_types),
                )
            )
    except IntegrityError:
        # created concurrently
        return False
    logger.info("bucket_created", bucket=bucket.name)
    return True
