# product_discovery/database/connection.py
import logging
from typing import AsyncGenerator
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def to_async_url(database_url: str) -> str:
    """Map plain sqlite/postgresql URLs onto their async drivers."""
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    return database_url


class DatabaseManager:
    """Async engine and session factory for the database cache backend"""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = to_async_url(database_url)

        if self.database_url.startswith("sqlite+aiosqlite"):
            self.async_engine = create_async_engine(
                self.database_url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=echo
            )
        elif self.database_url.startswith("postgresql+asyncpg"):
            self.async_engine = create_async_engine(
                self.database_url,
                pool_pre_ping=True,
                echo=echo
            )
        else:
            raise ValueError(f"Unsupported database URL: {database_url.split('@')[-1]}")

        self.session_factory = async_sessionmaker(
            self.async_engine,
            class_=AsyncSession,
            expire_on_commit=False
        )
        logger.info(f"🔧 Database engine created: {self.database_url.split('@')[-1]}")

    @asynccontextmanager
    async def get_session_context(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on any error"""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self):
        # Register models on Base.metadata
        from product_discovery.database import models  # noqa: F401

        async with self.async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
        logger.info("✅ Database tables initialized with create_all")

    async def health_check(self) -> str:
        try:
            async with self.get_session_context() as session:
                await session.execute(text("SELECT 1"))
            return "healthy"
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database health check failed: {e}")
            return "unhealthy"

    async def close(self):
        """Close database connections"""
        await self.async_engine.dispose()
        logger.info("✅ Database connections closed")
