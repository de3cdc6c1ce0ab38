"""
Persistence handle.

``Database`` owns one async engine and its session factory.  The
application builds exactly one in its lifespan and stores it on
``app.state``; tests build a fresh one per test.  Nothing here is a
module-level connection.
"""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from conduit.middleware import install_query_counter


class Base(DeclarativeBase):
    pass


def _configure_sqlite(engine: AsyncEngine) -> None:
    """
    Make SQLite behave like the production backend: foreign keys enforced
    and SAVEPOINT usable.  The driver's own transaction handling is turned
    off and SQLAlchemy emits BEGIN itself.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    def __init__(self, url: str, *, echo: bool = False, **engine_kwargs) -> None:
        self.url = url
        self.engine = create_async_engine(url, echo=echo, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            _configure_sqlite(self.engine)
        install_query_counter(self.engine)
        self.sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """One unit of work: commit on success, roll back on any exception."""
        async with self.sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
