"""Pytest configuration and fixtures."""

import os
import re
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["EMAIL_BACKEND"] = "console"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import fitquest.models  # noqa: F401
from fitquest.api.deps import get_email_service, get_event_bus
from fitquest.config import settings
from fitquest.database import get_session
from fitquest.main import app
from fitquest.models import User
from fitquest.services.accounts import AccountService
from fitquest.services.email import EmailBackend, EmailService
from fitquest.services.events import EventBus, create_event_bus
from fitquest.services.rate_limit import get_rate_limiter

TEST_PASSWORD = "correct-horse-battery"

TOKEN_IN_LINK = re.compile(r"token=([0-9a-f]{64})")


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite only enforces FOREIGN KEY / ON DELETE CASCADE when asked to."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def last_emailed_token(backend: AsyncMock) -> str:
    """Pull the raw token out of the most recent email sent through ``backend``."""
    text = backend.send.call_args.args[0].text
    match = TOKEN_IN_LINK.search(text)
    assert match, f"no token link in email: {text!r}"
    return match.group(1)


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database with all tables created."""
    engine = create_async_engine(
        settings.database_url_test,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session configured like the application's session factory."""
    factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
def email_backend() -> AsyncMock:
    """Email backend that records sends instead of delivering them."""
    backend = AsyncMock(spec=EmailBackend)
    backend.send.return_value = True
    return backend


@pytest.fixture
def email_service(email_backend: AsyncMock) -> EmailService:
    return EmailService(backend=email_backend)


@pytest.fixture
def event_bus() -> EventBus:
    return create_event_bus()


@pytest.fixture
def accounts(session: AsyncSession, email_service: EmailService, event_bus: EventBus) -> AccountService:
    """Account workflows bound to the test session."""
    return AccountService(session, email_service, event_bus)


@pytest.fixture
async def unverified_user(accounts: AccountService, session: AsyncSession) -> User:
    """A registered user who has not verified their email yet."""
    result = await accounts.register("runner@example.com", TEST_PASSWORD)
    user = await session.get(User, result.user_id)
    assert user is not None
    return user


@pytest.fixture
async def user(
    accounts: AccountService,
    session: AsyncSession,
    email_backend: AsyncMock,
    unverified_user: User,
) -> User:
    """A registered and verified user."""
    token = last_emailed_token(email_backend)
    await accounts.verify_email(token, unverified_user.email)
    await session.refresh(unverified_user)
    return unverified_user


@pytest.fixture
async def client(
    session: AsyncSession, email_service: EmailService, event_bus: EventBus
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_event_bus] = lambda: event_bus
    get_rate_limiter().reset()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    get_rate_limiter().reset()
