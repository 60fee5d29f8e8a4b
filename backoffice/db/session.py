"""
Async engine and session factory. Production runs on asyncpg; the test
suite swaps in an in-memory aiosqlite engine.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backoffice.core.config import settings

engine_args: dict = {"pool_pre_ping": True}

# SQLite uses a single-connection pool and rejects sizing arguments
if settings.DATABASE_URL.startswith("postgresql"):
    engine_args.update(pool_size=20, max_overflow=10, pool_recycle=300)

engine = create_async_engine(settings.DATABASE_URL, **engine_args)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
