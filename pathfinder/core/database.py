"""Async database engine and session management.

Configures the SQLAlchemy async engine and provides dependency injection for
database sessions. One session (and one transaction) per request.

PostgreSQL (asyncpg) is the production store. SQLite (aiosqlite) is supported
for local-first use and tests; its engine is configured so every transaction
starts with BEGIN IMMEDIATE, which serializes concurrent writers instead of
failing them on lock upgrade.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pathfinder.core.config import settings

# Seconds a SQLite connection waits on a held write lock before erroring
_SQLITE_BUSY_TIMEOUT = 30


def _enable_immediate_transactions(engine: AsyncEngine) -> None:
    """Take over transaction control from pysqlite.

    The driver's implicit BEGIN is disabled and an explicit BEGIN IMMEDIATE
    is emitted instead, so savepoints and SELECT-then-write sequences behave
    the way they do on PostgreSQL. Foreign keys are enforced on every
    connection.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine configured for the URL's dialect.

    Args:
        url: SQLAlchemy async database URL.
        echo: Log emitted SQL.

    Returns:
        Configured AsyncEngine.
    """
    if url.startswith("sqlite"):
        sqlite_engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": _SQLITE_BUSY_TIMEOUT},
        )
        _enable_immediate_transactions(sqlite_engine)
        return sqlite_engine

    return create_async_engine(url, echo=echo, pool_pre_ping=True)


engine = build_engine(
    settings.database_url,
    echo=settings.environment == "development",
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
