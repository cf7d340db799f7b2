"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite, shared across tasks with StaticPool
  (an in-memory database lives and dies with its single connection).
- ``get_db`` is overridden so every request uses the test session factory.
- Tables are created before and dropped after each test.
- The Redis tag cache is disabled by nulling its client; ``TagCache``
  treats that as "always miss, never write".
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from conduit.cache import tag_cache
from conduit.config import settings
from conduit.database import Base, get_db
from conduit.main import app
from conduit.middleware import install_query_counter
from conduit.models import Person

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

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
            tag_cache.discard_stale(session)
            raise
        await tag_cache.invalidate_if_stale(session)


app.dependency_overrides[get_db] = override_get_db


def as_user(username: str) -> dict:
    """Request headers carrying an already-authenticated identity."""
    return {settings.IDENTITY_HEADER: username}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    tag_cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    async with async_session_test() as session:
        yield session


@pytest.fixture
def session_factory() -> async_sessionmaker:
    return async_session_test


@pytest_asyncio.fixture
async def author(db_session: AsyncSession) -> Person:
    person = Person(username="alice", email="alice@example.com", bio="Writes things")
    db_session.add(person)
    await db_session.flush()
    return person


@pytest_asyncio.fixture
async def reader(db_session: AsyncSession) -> Person:
    person = Person(username="bob", email="bob@example.com")
    db_session.add(person)
    await db_session.flush()
    return person


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def alice() -> dict:
    return as_user("alice")


@pytest.fixture
def bob() -> dict:
    return as_user("bob")
