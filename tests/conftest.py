"""Shared test fixtures and configuration for Simple Growth backend tests."""
import os

# Settings are read at import time, so the environment comes first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMAIL_CONSOLE_MODE"] = "true"
os.environ["OPENAI_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"

from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from simplegrowth.auth.utils import create_access_token, get_password_hash
from simplegrowth.database import Base, get_db
from simplegrowth.main import app
from simplegrowth.models import Organization, User
from simplegrowth.notifications import EmailService, get_email_service
from simplegrowth.notifications.email_provider import SendResult

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


# =============================================================================
# Database
# =============================================================================

@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding and inspecting data around API calls."""
    async with session_factory() as session:
        yield session


# =============================================================================
# API client
# =============================================================================

@pytest.fixture
def email_service():
    """Email service whose sends are recorded instead of delivered."""
    service = MagicMock(spec=EmailService)
    result = SendResult(success=True, message_id="test")
    service.send_welcome_email = AsyncMock(return_value=result)
    service.send_verification_email = AsyncMock(return_value=result)
    service.send_password_reset_email = AsyncMock(return_value=result)
    service.send_invoice_reminder_email = AsyncMock(return_value=result)
    return service


@pytest_asyncio.fixture
async def client(session_factory, email_service) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: email_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# =============================================================================
# Users and organizations
# =============================================================================

async def create_organization(db: AsyncSession, name: str = "Acme Bakery", **fields) -> Organization:
    organization = Organization(name=name, **fields)
    db.add(organization)
    await db.commit()
    return organization


async def create_user(
    db: AsyncSession,
    email: str = "owner@example.com",
    organization_id: Optional[str] = None,
    role: str = "user",
    password: str = "correct-horse",
) -> User:
    user = User(
        email=email,
        name="Test User",
        hashed_password=get_password_hash(password),
        role=role,
        organization_id=organization_id,
    )
    db.add(user)
    await db.commit()
    return user


def _auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


@pytest.fixture
def headers_for():
    """Bearer headers for a user."""
    return _auth_headers


@pytest.fixture
def make_user(db):
    async def _make(**fields) -> User:
        return await create_user(db, **fields)
    return _make


@pytest.fixture
def make_organization(db):
    async def _make(name: str = "Other Co", **fields) -> Organization:
        return await create_organization(db, name, **fields)
    return _make


@pytest_asyncio.fixture
async def organization(db) -> Organization:
    return await create_organization(db)


@pytest_asyncio.fixture
async def member(db, organization) -> User:
    """A regular user belonging to ``organization``."""
    return await create_user(db, email="member@example.com", organization_id=organization.id)


@pytest_asyncio.fixture
async def admin(db) -> User:
    return await create_user(db, email="admin@simplegrowth.solutions", role="admin")
