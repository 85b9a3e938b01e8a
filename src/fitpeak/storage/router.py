"""Storage bootstrap endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.config import Settings, get_settings
from fitpeak.database import get_session
from fitpeak.errors import ConfigurationError
from fitpeak.storage.service import AVATAR_BUCKET, ensure_bucket

router = APIRouter(prefix="/api", tags=["Storage"])


class EnsureBucketResponse(BaseModel):
    ok: bool = True
    created: bool


@router.post("/ensure-avatar-bucket", response_model=EnsureBucketResponse)
async def ensure_avatar_bucket(
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> EnsureBucketResponse:
    """Idempotently create the ``avatars`` bucket (needs the service role key)."""
    if not settings.service_role_key:
        raise ConfigurationError("サーバーにサービスロールキーが設定されていません。")
    created = await ensure_bucket(db, AVATAR_BUCKET)
    await db.commit()
    return EnsureBucketResponse(created=created)
