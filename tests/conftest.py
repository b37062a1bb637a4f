"""
Shared fixtures.

- The app runs against one in-memory SQLite database (aiosqlite).  A
  StaticPool keeps a single connection alive; a fresh connection would
  open an empty database.
- Foreign keys are switched on (SQLite leaves them off by default) so
  reference violations surface exactly as they do on Postgres.
- The schema is built before every test and torn down after it.
- Redis is switched off, so every cache lookup is a miss and requests
  always hit the database.
- ``admin_client`` authenticates with a signed admin token in the
  ``auth_token`` cookie; ``anon_client`` sends no credentials.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from electrolab.auth import create_access_token
from electrolab.cache import cache
from electrolab.config import settings
from electrolab.database import Base, get_db
from electrolab.main import app
from electrolab.middleware import count_statements

sqlite_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
count_statements(sqlite_engine)


@event.listens_for(sqlite_engine.sync_engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSession = async_sessionmaker(sqlite_engine, class_=AsyncSession, expire_on_commit=False)


async def _sqlite_db():
    async with TestSession() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        await cache.invalidate_stale(session)


app.dependency_overrides[get_db] = _sqlite_db


@pytest_asyncio.fixture(autouse=True)
async def schema():
    cache._redis = None
    async with sqlite_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with sqlite_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """Session for tests that drive the services directly."""
    async with TestSession() as session:
        yield session


@pytest.fixture
def admin_token() -> str:
    return create_access_token("test-admin", role="admin")


def _client(**kwargs) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", **kwargs)


@pytest_asyncio.fixture
async def admin_client(admin_token: str) -> AsyncClient:
    async with _client(cookies={settings.AUTH_COOKIE_NAME: admin_token}) as client:
        yield client


@pytest_asyncio.fixture
async def anon_client() -> AsyncClient:
    async with _client() as client:
        yield client
