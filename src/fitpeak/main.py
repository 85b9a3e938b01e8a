"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fitpeak.auth.router import router as auth_router
from fitpeak.config import get_settings
from fitpeak.database import close_db, init_db
from fitpeak.geo.router import router as geo_router
from fitpeak.groups.router import router as groups_router
from fitpeak.health.router import router as health_router
from fitpeak.messaging.router import router as messaging_router
from fitpeak.middleware import setup_middleware
from fitpeak.recruitment.router import router as recruitment_router
from fitpeak.redis_client import close_redis, init_redis
from fitpeak.social.notification_router import relay_router
from fitpeak.social.notification_router import router as notification_router
from fitpeak.social.router import router as social_router
from fitpeak.storage.router import router as storage_router
from fitpeak.users.router import router as users_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url, settings.database_pool_size, settings.database_max_overflow)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="FITPEAK API",
        description="Backend API for FITPEAK, a social fitness community",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(social_router)
    app.include_router(notification_router)
    app.include_router(relay_router)
    app.include_router(messaging_router)
    app.include_router(groups_router)
    app.include_router(recruitment_router)
    app.include_router(geo_router)
    app.include_router(storage_router)

    return app


app = create_app()
