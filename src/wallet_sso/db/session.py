# src/wallet_sso/db/session.py
"""Database engine and schema configuration."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import event, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

if TYPE_CHECKING:
    from wallet_sso.core.settings import Settings
    from wallet_sso.db.pool import ConnectionPool


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import wallet_sso.models  # noqa: E402,F401


def _apply_sqlite_pragmas(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine backing the connection pool.

    SQLAlchemy's own pooling is disabled; `ConnectionPool` owns connection
    lifetimes.
    """
    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        settings.database_url,
        poolclass=NullPool,
        echo=settings.sql_debug,
    )
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _apply_sqlite_pragmas)
    return engine


async def create_tables(pool: ConnectionPool) -> None:
    """Create all database tables."""
    async with pool.transaction() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(pool: ConnectionPool) -> None:
    """Drop all database tables."""
    async with pool.transaction() as conn:
        await conn.run_sync(Base.metadata.drop_all)
