"""
Models package — import every model so SQLAlchemy's Base.metadata
knows about all tables (critical for `create_all` / Alembic).
"""

from app.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin
from app.models.session import RevokeReason, SeatLock, UserSession

__all__ = [
    "Base",
    "CreatedAtMixin",
    "UUIDPrimaryKeyMixin",
    "RevokeReason",
    "SeatLock",
    "UserSession",
]
