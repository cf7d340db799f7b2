from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from conduit.cache import tag_cache
from conduit.config import settings
from conduit.middleware import install_query_counter

# One engine per process; the test suite builds its own over SQLite.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """
    Request-scoped unit of work.

    Services only flush; the commit happens here once the handler has
    returned, followed by any cache invalidation the work deferred until
    its rows were visible to other sessions.  Any error rolls the whole
    operation back.  A cancelled request never reaches the commit, and
    closing the session discards the open transaction.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            tag_cache.discard_stale(session)
            raise
        await tag_cache.invalidate_if_stale(session)
