"""
User session model — device seat registry.

One row per (user, device) admission.  Rows are never deleted:
eviction, sign-out and expiry only flip `revoked`, so the table doubles
as an audit trail.  The partial unique index guarantees at most one
active row per device for a given user.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, CreatedAtMixin, UTCDateTime, UUIDPrimaryKeyMixin, utcnow


class RevokeReason(str, enum.Enum):
    EVICTED = "evicted"
    DEVICE_SIGNOUT = "device_signout"
    LOGOUT = "logout"
    EXPIRED = "expired"


class UserSession(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    __tablename__ = "user_sessions"

    # Issued by the external auth provider; opaque string, no FK.
    user_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    device_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    last_seen_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    revoked: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default=text("false"),
        nullable=False,
        index=True,
    )
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    revoked_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        Index("ix_user_sessions_user_revoked", "user_id", "revoked"),
        Index(
            "uq_user_sessions_active_device",
            "user_id",
            "device_id",
            unique=True,
            postgresql_where=text("revoked = false"),
            sqlite_where=text("revoked = 0"),
        ),
    )

    def __repr__(self) -> str:
        return f"<UserSession user={self.user_id} device={self.device_id} revoked={self.revoked}>"


class SeatLock(Base):
    """
    Per-user serialization point for admissions.

    Every admission transaction upserts this row first; the row lock
    (Postgres) or database write lock (SQLite) is held until commit.
    """

    __tablename__ = "seat_locks"

    user_id: Mapped[str] = mapped_column(String(256), primary_key=True)
    claimed_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SeatLock user={self.user_id} claimed_at={self.claimed_at}>"


__all__ = ["RevokeReason", "SeatLock", "UserSession"]
