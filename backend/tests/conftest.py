"""
Pytest configuration and shared fixtures for backend tests.
"""
import os
from pathlib import Path

import pytest
import respx
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import StaticPool

# Settings are read at import time; point them at throwaway values first
os.environ["ENV_FILE"] = str(Path(__file__).parent / "does-not-exist.env")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CRON_SECRET"] = ""
os.environ["DEFAULT_ACCOUNT_TEMPLATE"] = ""
os.environ["DEFAULT_SERVER_URL"] = ""

from embyhub.core.db import Base, build_engine, get_db  # noqa: E402
from embyhub import models  # noqa: E402,F401  registers tables


@pytest.fixture(scope="function")
async def test_engine():
    """In-memory SQLite engine; foreign keys are enforced like in production."""
    engine = build_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        pool_pre_ping=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def db(test_engine):
    """Async session; expire_on_commit=False matches the application session factory."""
    SessionLocal = async_sessionmaker(test_engine, expire_on_commit=False)
    async with SessionLocal() as session:
        yield session


@pytest.fixture(scope="function")
async def async_client(db):
    """
    Async test client for the FastAPI app with get_db overridden to the test session.
    The lifespan (table creation, bootstrap) does not run under ASGITransport.
    """
    from httpx import AsyncClient, ASGITransport
    from embyhub.main import app

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def emby_mock():
    """respx router for Emby HTTP calls; unused routes are allowed."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock
