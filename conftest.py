import os
from typing import AsyncGenerator

# Test settings must be in place before any module calls get_settings()
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["PAGARME_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["PAGARME_API_KEY"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db

# Import all models so metadata includes every table
from services.payments_service import models as _payments_models  # noqa: F401
from services.store_service import models as _store_models  # noqa: F401

get_settings.cache_clear()
settings = get_settings()


@pytest_asyncio.fixture
async def test_engine():
    """
    Fresh in-memory SQLite database per test.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
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
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session on the per-test database."""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def buyer_user() -> AuthUser:
    return AuthUser(user_id="buyer-1", email="buyer@example.com")


@pytest.fixture
def admin_user() -> AuthUser:
    return AuthUser(
        user_id="admin-1", email="admin@example.com", app_metadata={"role": "admin"}
    )


@pytest.fixture
def auth_state(buyer_user) -> dict:
    """Mutable holder for the user the overridden auth dependency returns."""
    return {"user": buyer_user}


def _override_common(app, db_session, auth_state) -> None:
    async def _get_db():
        yield db_session

    async def _current_user():
        return auth_state["user"]

    app.dependency_overrides[get_async_db] = _get_db
    app.dependency_overrides[get_current_user] = _current_user


@pytest_asyncio.fixture
async def payments_client(db_session, auth_state) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient for the payments service with DB and auth overridden."""
    from services.payments_service.app.main import app

    _override_common(app, db_session, auth_state)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def store_client(db_session, auth_state) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient for the store service with DB and auth overridden.

    Tests override the shipping aggregator and checkout orchestrator
    dependencies themselves when they need external calls.
    """
    from services.store_service.app.main import app

    _override_common(app, db_session, auth_state)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
