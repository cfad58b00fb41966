from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings


def _engine_options(database_url: str) -> dict:
    options = {"echo": settings.sql_echo, "future": True, "pool_pre_ping": True}
    if make_url(database_url).get_backend_name() == "sqlite":
        # Concurrent postings wait on SQLite's single writer lock instead of failing fast.
        options["connect_args"] = {"timeout": 30}
    else:
        # Discard connections after this many seconds to avoid stale connections.
        options["pool_recycle"] = 300
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    """One session per request; an uncommitted unit of work is rolled back on close."""
    async with AsyncSessionLocal() as session:
        yield session
