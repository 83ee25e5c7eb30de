"""Shared fixtures: a throwaway SQLite database per test."""

from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from app.core.database import build_engine, build_session_factory, get_db
from app.main import create_app
from app.models import Base, UserSession
from app.models.base import utcnow
from app.services import seat_service
from app.services.seat_service import SeatPolicy


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def admit(session_factory):
    """`await admit(user, device, **policy_overrides)` on a fresh session."""

    async def _admit(user_id, device_id, **overrides):
        policy = SeatPolicy(**overrides)
        async with session_factory() as db:
            return await seat_service.admit(user_id, device_id, db, policy=policy)

    return _admit


@pytest.fixture
def active_count(session_factory):
    async def _count(user_id: str, now: datetime | None = None) -> int:
        now = now or utcnow()
        async with session_factory() as db:
            stmt = select(func.count()).select_from(UserSession).where(
                UserSession.user_id == user_id,
                UserSession.revoked == False,  # noqa: E712
                UserSession.expires_at > now,
            )
            return (await db.execute(stmt)).scalar_one()

    return _count


@pytest.fixture
def seed_session(session_factory):
    """Insert a session row directly, bypassing admission."""

    async def _seed(
        user_id: str,
        device_id: str,
        *,
        last_seen_at: datetime | None = None,
        expires_in: timedelta = timedelta(days=30),
        token: str | None = None,
    ) -> UserSession:
        now = utcnow()
        record = UserSession(
            user_id=user_id,
            device_id=device_id,
            session_token=token or f"tok-{user_id}-{device_id}-{now.timestamp()}",
            created_at=now,
            last_seen_at=last_seen_at or now,
            expires_at=now + expires_in,
            revoked=False,
        )
        async with session_factory() as db:
            async with db.begin():
                db.add(record)
        return record

    return _seed


@pytest.fixture
async def client(session_factory):
    app = create_app()

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
