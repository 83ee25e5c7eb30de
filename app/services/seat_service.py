"""
Seat admission service.

Decides, for a (user_id, device_id) pair, whether to reuse the device's
active session, evict the least recently seen session and admit, or
reject.

Concurrency rules:
- The whole read → decide → write sequence runs in ONE transaction
  that starts by claiming the user's seat lock, so concurrent
  admissions for the same user queue instead of racing.
- Eviction runs inside a SAVEPOINT: with `strict_eviction` off, a
  failed eviction is logged and the new device is still admitted
  (availability over strict enforcement).
- A store conflict (duplicate active device, token collision) is
  retried once with a fresh transaction and token.

All business logic lives here — controllers call service methods
and return the result.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, InvalidArgument, StoreUnavailable
from app.models.base import utcnow
from app.models.session import RevokeReason, UserSession
from app.services import session_store
from app.services.session_store import RevokeMatcher, store_call

logger = logging.getLogger(__name__)

AdmissionStatus = Literal["reused", "admitted", "rejected"]


@dataclass(frozen=True)
class SeatPolicy:
    seat_limit: int = 3
    session_ttl: timedelta = timedelta(days=30)
    eviction_enabled: bool = True
    strict_eviction: bool = False
    reuse_heartbeat: bool = True

    @classmethod
    def from_settings(cls) -> "SeatPolicy":
        return cls(
            seat_limit=settings.SEAT_LIMIT,
            session_ttl=timedelta(days=settings.SESSION_TTL_DAYS),
            eviction_enabled=settings.EVICTION_ENABLED,
            strict_eviction=settings.STRICT_EVICTION,
            reuse_heartbeat=settings.REUSE_HEARTBEAT,
        )


@dataclass
class AdmissionResult:
    status: AdmissionStatus
    active_count: int
    session_id: uuid.UUID | None = None
    session_token: str | None = None
    evicted_session_ids: list[uuid.UUID] = field(default_factory=list)

    @property
    def evicted_session_id(self) -> uuid.UUID | None:
        return self.evicted_session_ids[0] if self.evicted_session_ids else None


# ── Helpers ──────────────────────────────────────────────────────────

def _require(**identifiers: str | None) -> None:
    missing = [name for name, value in identifiers.items() if not value or not value.strip()]
    if missing:
        raise InvalidArgument(f"Missing {' or '.join(missing)}")


async def _evict(
    db: AsyncSession,
    candidates: list[UserSession],
    policy: SeatPolicy,
    now: datetime,
) -> list[uuid.UUID]:
    """Revoke `candidates` inside a savepoint; honours `strict_eviction`."""
    evicted: list[uuid.UUID] = []
    try:
        async with db.begin_nested():
            for victim in candidates:
                await session_store.revoke(
                    db,
                    RevokeMatcher(session_id=victim.id),
                    reason=RevokeReason.EVICTED,
                    now=now,
                )
                evicted.append(victim.id)
    except (StoreUnavailable, SQLAlchemyError) as exc:
        if policy.strict_eviction:
            if isinstance(exc, StoreUnavailable):
                raise
            raise StoreUnavailable(f"Eviction failed: {exc}") from exc
        logger.warning(
            "Eviction failed for user %s; admitting anyway",
            candidates[0].user_id,
            exc_info=True,
        )
        return []

    for victim_id in evicted:
        logger.info("Evicted session %s (seat limit %d)", victim_id, policy.seat_limit)
    return evicted


async def _admit_once(
    user_id: str,
    device_id: str,
    db: AsyncSession,
    policy: SeatPolicy,
) -> AdmissionResult:
    now = utcnow()
    async with db.begin():
        await session_store.claim_seat_lock(db, user_id, now)
        await session_store.expire_stale(db, user_id, now)
        active = await session_store.list_active(db, user_id, now)

        # ── Known device → reuse ─────────────────────────────────────
        for sess in active:
            if sess.device_id == device_id:
                if policy.reuse_heartbeat:
                    await session_store.touch(db, sess, now)
                return AdmissionResult(
                    status="reused",
                    active_count=len(active),
                    session_id=sess.id,
                )

        # ── At the cap → reject or evict oldest ──────────────────────
        evicted: list[uuid.UUID] = []
        if len(active) >= policy.seat_limit:
            if not policy.eviction_enabled:
                logger.info("Seat limit reached for user %s; rejecting %s", user_id, device_id)
                return AdmissionResult(status="rejected", active_count=len(active))

            overflow = len(active) - policy.seat_limit + 1
            evicted = await _evict(db, active[:overflow], policy, now)

        record = await session_store.insert(
            db,
            user_id=user_id,
            device_id=device_id,
            now=now,
            ttl=policy.session_ttl,
        )

    logger.info("Admitted device %s for user %s (session %s)", device_id, user_id, record.id)
    return AdmissionResult(
        status="admitted",
        active_count=len(active) - len(evicted) + 1,
        session_id=record.id,
        session_token=record.session_token,
        evicted_session_ids=evicted,
    )


# ── Admission ────────────────────────────────────────────────────────

async def admit(
    user_id: str | None,
    device_id: str | None,
    db: AsyncSession,
    *,
    policy: SeatPolicy | None = None,
) -> AdmissionResult:
    """
    Admit `device_id` for `user_id` under the seat cap.

    Raises InvalidArgument before touching the store, StoreUnavailable on
    persistence failure (retryable — NOT a rejection) and ConflictError
    when a conflict survives the single retry.
    """
    _require(user_id=user_id, device_id=device_id)
    policy = policy or SeatPolicy.from_settings()

    try:
        return await store_call(_admit_once(user_id, device_id, db, policy))
    except ConflictError:
        logger.warning(
            "Admission conflict for user %s device %s; retrying",
            user_id,
            device_id,
        )
    return await store_call(_admit_once(user_id, device_id, db, policy))


async def list_active_sessions(user_id: str | None, db: AsyncSession) -> list[UserSession]:
    """Read-only view of a user's seats, oldest first."""
    _require(user_id=user_id)

    async def _read() -> list[UserSession]:
        async with db.begin():
            return await session_store.list_active(db, user_id, utcnow())

    return await store_call(_read())
