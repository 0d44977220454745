"""
Async engine for the identity tables.

fastapi-users only talks to an AsyncSession, so the users table is served by
this engine while every domain service uses engine_sync. Both point at the
same database: unless DATABASE_URL is set, the async URL is the sync one with
the aiosqlite driver swapped in.
"""

import os
from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from .engine_sync import DATABASE_URL as SYNC_DATABASE_URL


def _derive_async_url(sync_url: str) -> str:
    url = make_url(sync_url)
    if url.get_backend_name() != "sqlite":
        raise RuntimeError(
            "DATABASE_URL (driver async) es obligatorio cuando DATABASE_URL_SYNC no es SQLite."
        )
    return url.set(drivername="sqlite+aiosqlite").render_as_string(hide_password=False)


DATABASE_URL = os.getenv("DATABASE_URL") or _derive_async_url(SYNC_DATABASE_URL)

_is_sqlite = DATABASE_URL.startswith("sqlite")
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
)

if _is_sqlite:
    # mismo modo de journal que el motor síncrono
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_wal(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.close()

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Async session for the fastapi-users database adapter."""
    async with async_session_maker() as session:
        yield session


async def create_db_and_tables():
    """Create the tables through the async engine (run at startup, before create_sync_db_and_tables)."""
    from .. import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
