"""
Async engine & session factory.

Services own their transactions (`async with db.begin()`), so `get_db`
only hands out a session and closes it afterwards.

SQLite: the driver's implicit BEGIN is disabled and we emit our own,
otherwise SAVEPOINTs and the per-user seat lock misbehave.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine, applying the SQLite transaction fix-up."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": 30})
    else:
        kwargs.setdefault("pool_pre_ping", True)

    eng = create_async_engine(url, **kwargs)

    if eng.dialect.name == "sqlite":

        @event.listens_for(eng.sync_engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(eng.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return eng


def build_session_factory(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(eng, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=False)
async_session_factory = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency — one session per request."""
    async with async_session_factory() as session:
        yield session
