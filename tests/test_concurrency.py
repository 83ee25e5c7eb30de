"""Concurrent admissions for one user are serialized by the seat lock."""

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite

from app.core.exceptions import StoreUnavailable
from app.models import UserSession
from app.models.base import utcnow
from app.services import session_store


async def test_concurrent_new_devices_at_cap_stay_at_cap(admit, active_count):
    """N concurrent new devices against a full account leave exactly the cap."""
    for i in range(3):
        await admit("u1", f"seed{i}")

    results = await asyncio.gather(*(admit("u1", f"new{i}") for i in range(5)))

    assert all(r.status == "admitted" for r in results)
    assert await active_count("u1") == 3


async def test_concurrent_new_devices_on_empty_account(admit, active_count):
    results = await asyncio.gather(*(admit("u1", f"d{i}") for i in range(6)))

    assert [r.status for r in results].count("admitted") == 6
    assert await active_count("u1") == 3


async def test_concurrent_retries_for_same_device(admit, session_factory):
    """A duplicated network retry yields one session, not two."""
    results = await asyncio.gather(admit("u1", "d1"), admit("u1", "d1"))

    assert sorted(r.status for r in results) == ["admitted", "reused"]
    async with session_factory() as db:
        rows = (
            await db.execute(
                select(UserSession).where(
                    UserSession.user_id == "u1",
                    UserSession.revoked == False,  # noqa: E712
                )
            )
        ).scalars().all()
    assert len(rows) == 1


async def test_concurrent_admissions_issue_distinct_tokens(admit):
    results = await asyncio.gather(*(admit(f"user{i}", "d1") for i in range(5)))

    tokens = {r.session_token for r in results}
    assert len(tokens) == 5


# ── Seat lock ────────────────────────────────────────────────────────

async def test_seat_lock_is_first_store_call_of_admission(admit, monkeypatch):
    """Reads that decide admission must happen under the user's lock."""
    calls: list[str] = []

    def _spy(name):
        original = getattr(session_store, name)

        async def _wrapped(*args, **kwargs):
            calls.append(name)
            return await original(*args, **kwargs)

        monkeypatch.setattr(session_store, name, _wrapped)

    for name in ("claim_seat_lock", "expire_stale", "list_active", "revoke", "insert", "touch"):
        _spy(name)

    for i in range(4):
        await admit("u1", f"d{i}")
    await admit("u1", "d3")

    admissions = [i for i, name in enumerate(calls) if name == "claim_seat_lock"]
    assert len(admissions) == 5
    assert admissions[0] == 0
    for start, end in zip(admissions, admissions[1:] + [len(calls)]):
        assert calls[start:end][0] == "claim_seat_lock"
        assert "list_active" in calls[start:end]


def test_postgres_seat_lock_is_an_upsert_on_user_id():
    stmt = session_store.seat_lock_upsert("postgresql", "u1", utcnow())
    sql = str(stmt.compile(dialect=postgresql.dialect()))

    assert sql.startswith("INSERT INTO seat_locks")
    assert "ON CONFLICT (user_id) DO UPDATE SET claimed_at = excluded.claimed_at" in sql


def test_sqlite_seat_lock_is_an_upsert_on_user_id():
    stmt = session_store.seat_lock_upsert("sqlite", "u1", utcnow())
    sql = str(stmt.compile(dialect=sqlite.dialect()))

    assert "ON CONFLICT (user_id) DO UPDATE SET claimed_at = excluded.claimed_at" in sql


def test_seat_lock_refuses_unknown_dialect():
    with pytest.raises(StoreUnavailable):
        session_store.seat_lock_upsert("mysql", "u1", utcnow())
