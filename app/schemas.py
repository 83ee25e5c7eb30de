"""
Pydantic schemas for request / response serialization.

Request fields are optional on purpose: a missing or blank identifier
is reported by the service layer as a 400 with the same message the
browser client has always received, not as FastAPI's generic 422.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel


# ── Requests ─────────────────────────────────────────────────────────
class RegisterSessionRequest(BaseModel):
    user_id: str | None = None
    device_id: str | None = None


class RevokeDeviceRequest(BaseModel):
    device_id: str | None = None
    user_id: str | None = None


class LogoutRequest(BaseModel):
    user_id: str | None = None


class RevokeSessionRequest(BaseModel):
    user_id: str | None = None
    session_id: uuid.UUID | None = None


# ── Responses ────────────────────────────────────────────────────────
class RegisterSessionResponse(BaseModel):
    success: bool = True
    status: str
    reused: bool | None = None
    session_id: uuid.UUID | None = None
    evicted_session_id: uuid.UUID | None = None


class SeatLimitResponse(BaseModel):
    success: bool = False
    error: str
    reason: str


class RevokeResponse(BaseModel):
    success: bool = True
    revoked: int = 0


class SessionOut(BaseModel):
    id: uuid.UUID
    device_id: str
    created_at: datetime
    last_seen_at: datetime
    expires_at: datetime

    model_config = {"from_attributes": True}


class ActiveSessionsResponse(BaseModel):
    seat_limit: int
    sessions: list[SessionOut] = []


# ── Generic ──────────────────────────────────────────────────────────
class ErrorResponse(BaseModel):
    success: bool = False
    error: str
