"""
Test infrastructure for the Board API.

Strategy
--------
- SQLite via aiosqlite, one database file per test under ``tmp_path``.
  A file (rather than ``:memory:`` with a StaticPool) gives every session
  its own connection, which the store needs because paired reads run
  concurrently under ``asyncio.gather``.
- Redis is replaced by ``MemoryCache`` driven by a fake clock, so TTL
  expiry is tested by advancing time rather than sleeping.
- ``FlakyCache`` fails chosen operations on demand to exercise the
  cache degradation rules.
- bcrypt runs at its minimum cost to keep auth tests fast.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from board.cache import CacheManager, MemoryCache
from board.config import settings
from board.database import Base
from board.errors import StoreUnavailableError
from board.main import create_app
from board.middleware import install_query_counter
from board.services.comment_service import CommentService
from board.services.post_service import PostService
from board.services.user_service import UserService
from board.services.view_tracker import ViewTracker
from board.store import Store

import board.models  # noqa: F401

settings.BCRYPT_ROUNDS = 4


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FlakyCache(MemoryCache):
    """MemoryCache whose ``get`` / ``set`` / ``delete`` can be switched to fail."""

    def __init__(self, clock) -> None:
        super().__init__(clock)
        self.failing: set[str] = set()

    def _maybe_fail(self, op: str) -> None:
        if op in self.failing:
            raise StoreUnavailableError(f"cache {op} down")

    async def get(self, key):
        self._maybe_fail("get")
        return await super().get(key)

    async def set(self, key, value, ttl):
        self._maybe_fail("set")
        await super().set(key, value, ttl)

    async def delete(self, key):
        self._maybe_fail("delete")
        await super().delete(key)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Create all tables in a fresh database file, dispose the engine after."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'board.db'}")
    install_query_counter(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> Store:
    return Store(session_factory)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock) -> FlakyCache:
    return FlakyCache(clock)


@pytest.fixture
def cache(backend) -> CacheManager:
    return CacheManager(backend)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def post_service(store, cache) -> PostService:
    return PostService(store, cache)


@pytest.fixture
def comment_service(store, cache) -> CommentService:
    return CommentService(store, cache)


@pytest.fixture
def view_tracker(store, cache) -> ViewTracker:
    return ViewTracker(store, cache)


@pytest.fixture
def user_service(store) -> UserService:
    return UserService(store)


@pytest.fixture
def make_user(store):
    """Insert a user directly (no bcrypt) and return its dict."""
    async def _make(username: str = "alice") -> dict:
        return await store.insert_user(username, f"{username}@example.com", "not-a-real-hash")
    return _make


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def app(backend, session_factory):
    return create_app(cache_backend=backend, session_factory=session_factory)


@pytest_asyncio.fixture
async def async_client(app) -> AsyncClient:
    """httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register_and_login(async_client):
    """Register a user through the API and return ``(user, auth_headers)``."""
    async def _login(username: str = "alice", password: str = "secret123"):
        resp = await async_client.post("/auth/register", json={
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
        })
        assert resp.status_code == 201, resp.text
        resp = await async_client.post("/auth/login", json={
            "username": username,
            "password": password,
        })
        assert resp.status_code == 200, resp.text
        body = resp.json()
        return body["user"], {"Authorization": f"Bearer {body['access_token']}"}
    return _login
