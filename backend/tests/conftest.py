"""
DisasterHub Backend — Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Points the app at an in-memory SQLite database (aiosqlite) before any
       disasterhub module is imported, creates the schema for each test, and
       talks to the real FastAPI app through httpx's ASGITransport.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── database (autouse): create_all before, engine.dispose() after
    ├── temp_storage: temporary directory for file operations
    ├── sample_image_bytes: minimal JPEG bytes
    ├── test_client: httpx AsyncClient bound to the app
    └── reporter / other_reporter / volunteer / other_volunteer / admin:
        persisted accounts of each role

ASGITransport awaits the whole ASGI call, so background tasks (the
notification fan-out) have finished by the time a response is returned.
"""

import os
import tempfile

# Override settings for testing BEFORE any disasterhub imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="disasterhub_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["REALTIME_ENABLED"] = "true"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

from typing import Any, Dict, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from disasterhub.database import Base, async_session_factory, engine  # noqa: E402
from disasterhub.models import Disaster, Notification, User  # noqa: E402
from disasterhub.security import create_access_token, hash_password  # noqa: E402

DEFAULT_PASSWORD = "secret123"


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

async def create_user(
    role: str = "user",
    email: Optional[str] = None,
    name: Optional[str] = None,
    password: str = DEFAULT_PASSWORD,
    is_active: bool = True,
    skills: Optional[list] = None,
) -> User:
    """Persist an account directly, bypassing the API."""
    async with async_session_factory() as session:
        user = User(
            name=name or f"Test {role.title()}",
            email=email or f"{role}-{os.urandom(4).hex()}@example.com",
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
            skills=skills or [],
        )
        session.add(user)
        await session.commit()
        return user


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


def disaster_payload(**overrides: Any) -> Dict[str, Any]:
    """A valid create body in wire (camelCase) format."""
    payload: Dict[str, Any] = {
        "title": "River flooding downtown",
        "description": "The river burst its banks near the main bridge.",
        "type": "flood",
        "severity": "high",
        "location": {
            "address": "1 Bridge Street, Springfield",
            "coordinates": {"lat": 40.0, "lng": -75.0},
        },
    }
    payload.update(overrides)
    return payload


async def fetch(model, pk):
    """Load a row in a fresh session, bypassing any cached instance."""
    async with async_session_factory() as session:
        return await session.get(model, pk)


async def notifications_for(user_id) -> list:
    from sqlalchemy import select

    async with async_session_factory() as session:
        result = await session.execute(
            select(Notification).where(Notification.recipient_id == user_id)
        )
        return list(result.scalars().all())


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture(autouse=True)
async def database():
    """
    Fresh schema for every test.

    The in-memory database lives on the single StaticPool connection;
    disposing the engine drops it, together with the connection that is
    bound to this test's event loop.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """
    Minimal JPEG: SOI marker + JFIF header + EOI marker.

    Not a real photograph, but libmagic identifies it as image/jpeg.
    """
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest_asyncio.fixture
async def test_client():
    """
    HTTPX AsyncClient routed straight into the FastAPI app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/api/health")
    """
    from disasterhub.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def reporter() -> User:
    return await create_user("user", email="alice@example.com", name="Alice Reporter")


@pytest_asyncio.fixture
async def other_reporter() -> User:
    return await create_user("user", email="carol@example.com", name="Carol Reporter")


@pytest_asyncio.fixture
async def volunteer() -> User:
    return await create_user("volunteer", email="bob@example.com", name="Bob Volunteer", skills=["first aid"])


@pytest_asyncio.fixture
async def other_volunteer() -> User:
    return await create_user("volunteer", email="vera@example.com", name="Vera Volunteer")


@pytest_asyncio.fixture
async def admin() -> User:
    return await create_user("admin", email="dana@example.com", name="Dana Admin")


@pytest_asyncio.fixture
async def disaster(test_client, reporter) -> Dict[str, Any]:
    """A pending report filed by `reporter` through the API (wire format)."""
    response = await test_client.post(
        "/api/disasters", json=disaster_payload(), headers=auth_headers(reporter),
    )
    assert response.status_code == 201, response.text
    return response.json()["disaster"]


__all__ = [
    "DEFAULT_PASSWORD",
    "Disaster",
    "auth_headers",
    "create_user",
    "disaster_payload",
    "fetch",
    "notifications_for",
]
