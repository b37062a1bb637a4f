from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from electrolab.cache import cache
from electrolab.config import settings
from electrolab.middleware import count_statements

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)
count_statements(engine)

# expire_on_commit=False: handlers serialise ORM objects after the commit.
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db():
    """
    Yield one session per request.

    Every admin action runs inside this single transaction: it is committed
    when the handler returns and rolled back when anything raises.  Cache
    namespaces the handler marked stale are dropped only after the commit,
    so a concurrent read cannot refill them from the old rows.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        await cache.invalidate_stale(session)
