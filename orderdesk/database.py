"""
Database Connection Module
Wraps the SQLAlchemy async engine and session factory in an explicitly
constructed Database object. create_app() builds one per process and
stores it on app.state; request handlers get sessions through get_db().
"""

import logging
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


class Database:
    """
    Owns the engine and the session factory.

    SQLite URLs (used by the test suite) get foreign keys switched on so
    ON DELETE CASCADE behaves as it does on PostgreSQL; in-memory ones also
    get a static pool so the database survives across sessions.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url

        if url.startswith("sqlite"):
            options = {"poolclass": StaticPool} if ":memory:" in url else {}
            self.engine = create_async_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
                **options,
            )
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self.engine = create_async_engine(
                url,
                echo=echo,
                pool_size=5,  # Connection pool size
                max_overflow=10,  # Extra connections when pool is full
                pool_pre_ping=True,
            )

        # Objects remain accessible after commit
        self.session_maker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        """Open a new session; use as an async context manager."""
        return self.session_maker()

    async def create_all(self) -> None:
        """
        Create all tables in database.
        Called once at application startup.
        """
        # Register mappers before create_all
        from orderdesk import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
