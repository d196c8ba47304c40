"""
Database handle: async engine, session factory and FastAPI dependencies.

One `Database` is constructed per process in the application lifespan and
disposed at shutdown. Services receive it explicitly instead of importing a
module-level engine.

PostgreSQL (asyncpg) is the production store. SQLite (aiosqlite) is supported
for local runs and tests: every transaction is opened with BEGIN IMMEDIATE so
concurrent writers serialize on the database lock the same way they serialize
on the event row lock in PostgreSQL.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import Depends, Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from eventease.core.config import Settings, get_settings
from eventease.core.logging import get_logger

logger = get_logger(__name__)

# Bulk registration relies on INSERT .. ON CONFLICT DO NOTHING RETURNING
SUPPORTED_DIALECTS = ("postgresql", "sqlite")


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Take transaction control away from the driver so BEGIN is ours
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Owns the connection pool for the lifetime of the process."""

    def __init__(
        self,
        url: str,
        *,
        isolation_level: Optional[str] = "READ COMMITTED",
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
        echo: bool = False,
    ):
        self.url = make_url(url)
        self.dialect_name = self.url.get_backend_name()
        if self.dialect_name not in SUPPORTED_DIALECTS:
            raise ValueError(
                f"Unsupported database backend {self.dialect_name!r}; "
                f"expected one of {', '.join(SUPPORTED_DIALECTS)}"
            )

        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if self.dialect_name == "sqlite":
            engine_kwargs["connect_args"] = {"timeout": 30}
        else:
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
            )
            if isolation_level:
                engine_kwargs["isolation_level"] = isolation_level

        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        if self.dialect_name == "sqlite":
            _install_sqlite_hooks(self.engine)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Database":
        settings = settings or get_settings()
        return cls(
            settings.DATABASE_URL,
            isolation_level=settings.DB_ISOLATION_LEVEL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            yield session

    async def create_all(self) -> None:
        from eventease.db.base import Base
        import eventease.models  # noqa: F401 - register mappers

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        from eventease.db.base import Base
        import eventease.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("database_disposed", dialect=self.dialect_name)


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db(database: Database = Depends(get_database)) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Services commit explicitly; anything left is rolled back on close."""
    async with database.session() as session:
        yield session
