"""Shared test fixtures.

Tests run against an in-memory SQLite database. The app and the test share
one session, so whatever a request commits is visible to assertions.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fitpeak.auth.jwt import create_access_token
from fitpeak.database import get_session
from fitpeak.db.base import Base
from fitpeak.db.models import Profile, User
from fitpeak.email.service import BaseEmailProvider, EmailService
from fitpeak.main import create_app
from fitpeak.social.line_push import LinePushClient, PushResult
from fitpeak.social.notification_fanout import NotificationFanOut, get_fanout

APP_URL = "https://fitpeak.test"

MakeUser = Callable[..., Awaitable[User]]


def auth_headers(user_id: str) -> dict[str, str]:
    """Bearer header for a logged-in user."""
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session, also handed to the app."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def email_provider() -> AsyncMock:
    """Email provider that records sends and reports success."""
    provider = AsyncMock(spec=BaseEmailProvider)
    provider.send.return_value = True
    return provider


@pytest.fixture
def push_client() -> MagicMock:
    """LINE push client that records pushes and reports them sent."""
    push = MagicMock(spec=LinePushClient)
    push.push_text = AsyncMock(return_value=PushResult("sent"))
    return push


@pytest.fixture
def fanout(email_provider: AsyncMock, push_client: MagicMock) -> NotificationFanOut:
    return NotificationFanOut(email=EmailService(provider=email_provider), push=push_client, app_url=APP_URL)


@pytest.fixture
def app(db: AsyncSession, fanout: NotificationFanOut) -> FastAPI:
    app = create_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_fanout] = lambda: fanout
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(db: AsyncSession) -> MakeUser:
    """Factory: committed user plus profile."""
    counter = 0

    async def _make(
        nickname: str | None = None,
        email: str | None = "",
        line_user_id: str | None = None,
        **profile_fields: object,
    ) -> User:
        nonlocal counter
        counter += 1
        user = User(
            email=f"user{counter}@example.com" if email == "" else email,
            email_confirmed=True,
            line_user_id=line_user_id,
        )
        db.add(user)
        await db.flush()
        db.add(Profile(id=user.id, nickname=nickname, **profile_fields))
        await db.commit()
        return user

    return _make
