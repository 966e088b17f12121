"""Pytest configuration and shared fixtures."""

import asyncio
import os
import tempfile
from pathlib import Path

# Settings are read at import time, so the test database has to be chosen first
_DB_DIR = Path(tempfile.mkdtemp(prefix="ivas-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'ivas_test.db'}"
os.environ["JWT_SECRET"] = "ivas-test-secret-0123456789abcdef0123456789"
os.environ["REALTIME_HEARTBEAT_INTERVAL"] = "0"
os.environ["DB_AUTO_MIGRATE"] = "true"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from ivas.core.database import async_session_maker, db_client  # noqa: E402
from ivas.main import app  # noqa: E402


async def reset_tables() -> None:
    await db_client.drop_tables()
    await db_client.create_tables()


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client on an empty database.

    The client is entered as a context manager so the lifespan starts the
    event hub used by the websocket channel.
    """
    asyncio.run(reset_tables())
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def db_session():
    """Session on an empty database for service level tests."""
    await reset_tables()
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def session_factory():
    return async_session_maker
