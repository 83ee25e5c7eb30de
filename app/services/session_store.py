"""
Session store — persistence primitives for the seat registry.

Handles:
- Claiming the per-user seat lock (first statement of an admission)
- Querying active sessions, oldest first (eviction candidate at [0])
- Inserting new sessions with a fresh opaque token
- Idempotent revocation by session id, device id or user id

No business policy lives here.  `store_call` is the boundary where
SQLAlchemy / driver errors become `StoreUnavailable` / `ConflictError`.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TypeVar

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, StoreUnavailable
from app.core.security import generate_session_token
from app.models.session import RevokeReason, SeatLock, UserSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UPSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True)
class RevokeMatcher:
    """
    Which rows a revoke touches.  Exactly one of `session_id`,
    `device_id` or `user_id` drives the match; `user_id` alongside
    `session_id` / `device_id` only narrows it.
    """

    session_id: uuid.UUID | None = None
    device_id: str | None = None
    user_id: str | None = None

    def __post_init__(self) -> None:
        if self.session_id is None and not self.device_id and not self.user_id:
            raise ValueError("RevokeMatcher needs session_id, device_id or user_id")
        if self.session_id is not None and self.device_id:
            raise ValueError("RevokeMatcher takes session_id or device_id, not both")


async def store_call(awaitable: Awaitable[T], timeout: float | None = None) -> T:
    """
    Await a store operation under the configured timeout and translate
    failures into the service taxonomy.
    """
    limit = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=limit)
    except IntegrityError as exc:
        raise ConflictError("Session write conflicted with an existing row") from exc
    except asyncio.TimeoutError as exc:
        logger.error("Session store call exceeded %.1fs", limit)
        raise StoreUnavailable(f"Session store timed out after {limit:.1f}s") from exc
    except (SQLAlchemyError, OSError) as exc:
        logger.exception("Session store call failed")
        raise StoreUnavailable(str(exc)) from exc


def seat_lock_upsert(dialect_name: str, user_id: str, now: datetime):
    """`INSERT ... ON CONFLICT (user_id) DO UPDATE` on the seat-lock row."""
    insert = _UPSERTS.get(dialect_name)
    if insert is None:
        raise StoreUnavailable(f"Seat locking is not supported on {dialect_name}")

    stmt = insert(SeatLock).values(user_id=user_id, claimed_at=now)
    return stmt.on_conflict_do_update(
        index_elements=[SeatLock.user_id],
        set_={"claimed_at": stmt.excluded.claimed_at},
    )


async def claim_seat_lock(db: AsyncSession, user_id: str, now: datetime) -> None:
    """Upsert the user's seat-lock row; the lock is held until commit."""
    await db.execute(seat_lock_upsert(db.get_bind().dialect.name, user_id, now))


async def list_active(db: AsyncSession, user_id: str, now: datetime) -> list[UserSession]:
    """Active sessions for a user, least recently seen first."""
    stmt = (
        select(UserSession)
        .where(
            UserSession.user_id == user_id,
            UserSession.revoked == False,  # noqa: E712
            UserSession.expires_at > now,
        )
        .order_by(
            UserSession.last_seen_at.asc(),
            UserSession.created_at.asc(),
            UserSession.id.asc(),
        )
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def insert(
    db: AsyncSession,
    *,
    user_id: str,
    device_id: str,
    now: datetime,
    ttl: timedelta,
) -> UserSession:
    """Create a fresh active session.  Flushes so conflicts surface here."""
    record = UserSession(
        id=uuid.uuid4(),
        user_id=user_id,
        device_id=device_id,
        session_token=generate_session_token(),
        created_at=now,
        last_seen_at=now,
        expires_at=now + ttl,
        revoked=False,
    )
    db.add(record)
    await db.flush()
    return record


async def touch(db: AsyncSession, record: UserSession, now: datetime) -> None:
    """Heartbeat — bump `last_seen_at` on a reused session."""
    record.last_seen_at = now
    await db.flush()


async def revoke(
    db: AsyncSession,
    matcher: RevokeMatcher,
    *,
    reason: RevokeReason,
    now: datetime,
) -> int:
    """
    Flip `revoked` on every matching non-revoked row.

    Already-revoked rows are left untouched, so repeating the call is a
    no-op.  Returns the number of rows flipped (0 when nothing matched).
    Objects already loaded in `db` are not refreshed.
    """
    conditions = [UserSession.revoked == False]  # noqa: E712
    if matcher.session_id is not None:
        conditions.append(UserSession.id == matcher.session_id)
    if matcher.device_id:
        conditions.append(UserSession.device_id == matcher.device_id)
    if matcher.user_id:
        conditions.append(UserSession.user_id == matcher.user_id)

    stmt = (
        update(UserSession)
        .where(*conditions)
        .values(revoked=True, revoked_at=now, revoked_reason=reason.value)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount


async def expire_stale(db: AsyncSession, user_id: str, now: datetime) -> int:
    """Mark a user's past-expiry rows revoked so their device slot frees up."""
    stmt = (
        update(UserSession)
        .where(
            UserSession.user_id == user_id,
            UserSession.revoked == False,  # noqa: E712
            UserSession.expires_at <= now,
        )
        .values(revoked=True, revoked_at=now, revoked_reason=RevokeReason.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount
