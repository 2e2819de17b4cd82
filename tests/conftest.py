"""
Shared fixtures for the marketplace test suite.

- The database is SQLite in memory through aiosqlite, so no Postgres is
  needed.  StaticPool pins every session to one connection, because each
  new connection to ``:memory:`` would open an empty database.
- ``get_db`` is overridden with a factory bound to that engine.  It keeps
  the production commit-or-rollback contract.
- Tables are created before and dropped after every test.
- Redis is switched off by setting ``cache._redis = None``; the cache then
  misses on every read.  Tests that exercise invalidation plug in an
  in-memory fake for the duration of the test.
"""
from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from marketplace.cache import cache
from marketplace.database import Base, get_db
from marketplace.main import app
from marketplace.middleware import install_query_counter
from marketplace.models import Seller, SellerStatus, User

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Register the per-request SQL query counter on the test engine.
install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

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
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Fresh schema per test; the cache starts disabled."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """Session on the test engine for seeding rows and inspecting state directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx client that calls the app in-process through ASGITransport."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# Shared builders
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def make_seller(db_session: AsyncSession):
    """
    Return a builder that inserts a user plus seller profile directly,
    bypassing the API.  Rows are flushed, not committed.
    """

    async def _make(
        username: str = "seller",
        status: SellerStatus = SellerStatus.APPROVED,
        commission_rate: Decimal = Decimal("20.00"),
    ) -> Seller:
        user = User(username=username, email=f"{username}@example.com")
        db_session.add(user)
        await db_session.flush()
        seller = Seller(
            user_id=user.id,
            store_name=f"{username.title()} Studio",
            slug=f"{username}-studio",
            status=status,
            commission_rate=commission_rate,
        )
        db_session.add(seller)
        await db_session.flush()
        return seller

    return _make
