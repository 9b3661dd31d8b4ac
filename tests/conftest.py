"""
Test infrastructure for the Threads API.

Strategy
--------
- Environment defaults are set before the package is imported: a signing
  secret (the codec refuses to start without one), cheap bcrypt rounds, and
  an SQLite URL so the production engine never needs asyncpg.
- SQLite in-memory via aiosqlite with StaticPool: every session shares one
  connection, so all sessions see the same in-memory database.
- ``get_db`` is overridden with the test session factory; tables are
  created before and dropped after each test.
- Redis is replaced by ``InMemoryRedis``, a dict-backed object exposing the
  handful of ``redis.asyncio`` coroutines ``CacheManager`` calls.  Each test
  gets a fresh cache through the ``get_cache`` override, so feed caching
  and invalidation are exercised for real.
"""
import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from threads_api.cache import CacheManager, get_cache
from threads_api.database import Base, get_db
from threads_api.main import app

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Redis stand-in
# ---------------------------------------------------------------------------

class InMemoryRedis:
    """The subset of the redis.asyncio client used by CacheManager."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    async def incr(self, key: str) -> int:
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def aclose(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for direct service-layer tests and seeding."""
    async with async_session_test() as session:
        yield session


@pytest.fixture
def session_factory() -> async_sessionmaker:
    """For tests that need a second, independent session."""
    return async_session_test


@pytest.fixture
def redis_backend() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def feed_cache(redis_backend: InMemoryRedis) -> CacheManager:
    return CacheManager("redis://test", feed_key="posts", client=redis_backend)


@pytest_asyncio.fixture
async def async_client(feed_cache: CacheManager) -> AsyncClient:
    """httpx.AsyncClient wired to the app, with this test's feed cache."""
    app.dependency_overrides[get_cache] = lambda: feed_cache
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_cache, None)


@pytest.fixture
def register_and_login(async_client: AsyncClient):
    """
    Return a coroutine that registers *username* (email
    ``<username>@example.com``) and returns ``(user_id, headers)`` where
    *headers* carries the bearer token.
    """

    async def _register_and_login(username: str, password: str = "secret123"):
        email = f"{username}@example.com"
        resp = await async_client.post("/api/v1/auth/register", json={
            "name": username.title(),
            "username": username,
            "email": email,
            "password": password,
        })
        assert resp.status_code == 201, resp.text

        resp = await async_client.post("/api/v1/auth/login", json={
            "email": email,
            "password": password,
        })
        assert resp.status_code == 200, resp.text
        headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

        resp = await async_client.get("/api/v1/users/search", params={"username": username}, headers=headers)
        user_id = next(u["id"] for u in resp.json() if u["username"] == username)
        return user_id, headers

    return _register_and_login
