"""
Revocation service — explicit session termination.

Handles:
- Revoking the session(s) of one device (local sign-out)
- Revoking every session of a user (global sign-out / admin logout)
- Revoking one session by id ("sign out another device")

Every operation is idempotent: "nothing matched" is a success, and a
caller cannot tell "already revoked" from "just revoked".  Returns the
number of rows flipped for logging only.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidArgument
from app.models.base import utcnow
from app.models.session import RevokeReason
from app.services import session_store
from app.services.session_store import RevokeMatcher, store_call

logger = logging.getLogger(__name__)


async def _revoke(db: AsyncSession, matcher: RevokeMatcher, reason: RevokeReason) -> int:
    async def _run() -> int:
        async with db.begin():
            return await session_store.revoke(db, matcher, reason=reason, now=utcnow())

    count = await store_call(_run())
    logger.info("Revoked %d session(s) matching %s (%s)", count, matcher, reason.value)
    return count


async def revoke_by_device(
    device_id: str | None,
    db: AsyncSession,
    *,
    user_id: str | None = None,
) -> int:
    """
    Revoke the active session(s) for a device.

    Device ids are only unique per user; pass `user_id` to scope the
    match.  Without it every user's active row for the device goes.
    """
    if not device_id or not device_id.strip():
        raise InvalidArgument("Missing device_id")
    matcher = RevokeMatcher(device_id=device_id, user_id=user_id or None)
    return await _revoke(db, matcher, RevokeReason.DEVICE_SIGNOUT)


async def revoke_all_for_user(
    user_id: str | None,
    db: AsyncSession,
    *,
    reason: RevokeReason = RevokeReason.LOGOUT,
) -> int:
    """Revoke every active session for a user."""
    if not user_id or not user_id.strip():
        raise InvalidArgument("Missing user_id")
    return await _revoke(db, RevokeMatcher(user_id=user_id), reason)


async def revoke_session(
    session_id: uuid.UUID | None,
    user_id: str | None,
    db: AsyncSession,
) -> int:
    """Revoke one of a user's sessions; another user's session id matches nothing."""
    if session_id is None or not user_id or not user_id.strip():
        raise InvalidArgument("Missing user_id or session_id")
    matcher = RevokeMatcher(session_id=session_id, user_id=user_id)
    return await _revoke(db, matcher, RevokeReason.DEVICE_SIGNOUT)
