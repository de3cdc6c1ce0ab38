"""
Test infrastructure for the Conduit API.

Strategy
--------
- Settings are read from the environment when ``conduit.config`` is first
  imported, so the required SECRET_KEY (and a cheap bcrypt cost) are set
  here before any ``conduit`` import.
- Every test gets its own ``Database`` handle on an in-memory SQLite
  database (aiosqlite).  StaticPool keeps all sessions on one connection,
  which is required because an in-memory database is connection-scoped.
- The handle and a Redis-less ``CacheManager`` are put on ``app.state``
  exactly where the lifespan would put them; httpx's ASGITransport does
  not run the lifespan.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("REDIS_URL", "")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from conduit.cache import CacheManager  # noqa: E402
from conduit.database import Database  # noqa: E402
from conduit.main import app  # noqa: E402
from conduit.schemas import UserRegister  # noqa: E402
from conduit.security import decode_access_token  # noqa: E402
from conduit.services import user_service  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def database() -> Database:
    """A fresh database handle with all tables created, disposed afterwards."""
    database = Database(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await database.create_all()
    app.state.database = database
    app.state.cache = CacheManager(None)
    yield database
    await database.drop_all()
    await database.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncSession:
    """
    Yield a live AsyncSession for service-level tests.  The session is never
    committed; everything stays inside one transaction per test.
    """
    async with database.sessionmaker() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(database: Database) -> AsyncClient:
    """httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db_session: AsyncSession):
    """Register a user through the service and return the new user id."""

    async def _make_user(username: str) -> int:
        user = await user_service.register(
            db_session,
            UserRegister(username=username, email=f"{username}@example.com", password="password123"),
        )
        return decode_access_token(user["token"])

    return _make_user


@pytest.fixture
def auth_headers(async_client: AsyncClient):
    """Register a user over HTTP and return its ``Authorization`` headers."""

    async def _auth_headers(username: str) -> dict:
        resp = await async_client.post("/api/users", json={"user": {
            "username": username,
            "email": f"{username}@example.com",
            "password": "password123",
        }})
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Token {resp.json()['user']['token']}"}

    return _auth_headers
