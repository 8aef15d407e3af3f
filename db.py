# ===============================================================
# db.py — Central async SQLAlchemy setup
# ===============================================================
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

# Import Base and models so metadata knows every table
from base import Base
import models  # noqa: F401

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Ensure the asyncpg driver is used for Postgres URLs."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


class Database:
    """
    Owns the engine and the session factory.
    Built once at startup and disposed on shutdown.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = normalize_database_url(url)

        if self.url.startswith("sqlite"):
            # concurrent writers wait on the file lock instead of failing
            engine_kwargs = {"connect_args": {"timeout": 30}}
        else:
            engine_kwargs = {
                "pool_pre_ping": True,     # checks if connection is alive
                "pool_recycle": 1800,      # recycle connections every 30 mins
            }

        self.engine = create_async_engine(self.url, echo=echo, **engine_kwargs)
        self.sessionmaker = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            class_=AsyncSession,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Use in services and background tasks."""
        async with self.sessionmaker() as session:
            yield session

    async def create_all(self):
        """Create tables manually — not for production."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables ensured (development use only)")

    async def ping(self) -> bool:
        """Quick check if DB is reachable."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"❌ Database connection failed: {e}")
            return False

    async def dispose(self):
        await self.engine.dispose()
        logger.info("🔌 Database engine disposed")
