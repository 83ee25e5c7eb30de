"""
Session controller — seat registration, device sign-out & logout.

Controllers are THIN — they validate the optional bearer token,
delegate to services and shape the JSON the browser client expects.
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.security import ensure_subject_matches, get_token_subject
from app.schemas import (
    ActiveSessionsResponse,
    ErrorResponse,
    LogoutRequest,
    RegisterSessionRequest,
    RegisterSessionResponse,
    RevokeDeviceRequest,
    RevokeResponse,
    RevokeSessionRequest,
    SeatLimitResponse,
    SessionOut,
)
from app.services import revocation_service, seat_service

router = APIRouter(prefix="/session", tags=["Session"])

_ERRORS = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "/register",
    response_model=RegisterSessionResponse,
    response_model_exclude_none=True,
    responses={**_ERRORS, 403: {"model": SeatLimitResponse}},
)
async def register(
    body: RegisterSessionRequest,
    subject: str | None = Depends(get_token_subject),
    db: AsyncSession = Depends(get_db),
):
    """Admit this device into one of the user's seats."""
    ensure_subject_matches(subject, body.user_id)
    result = await seat_service.admit(body.user_id, body.device_id, db)

    if result.status == "rejected":
        content = SeatLimitResponse(
            error=f"Seat limit reached ({settings.SEAT_LIMIT} devices maximum)",
            reason=settings.SEAT_LIMIT_REASON,
        )
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=content.model_dump())

    return RegisterSessionResponse(
        status=result.status,
        reused=True if result.status == "reused" else None,
        session_id=result.session_id,
        evicted_session_id=result.evicted_session_id,
    )


@router.post("/revoke", response_model=RevokeResponse, responses=_ERRORS)
async def revoke(
    body: RevokeDeviceRequest,
    db: AsyncSession = Depends(get_db),
):
    """Sign this device out.  Succeeds even when nothing was active."""
    count = await revocation_service.revoke_by_device(body.device_id, db, user_id=body.user_id)
    return RevokeResponse(revoked=count)


@router.post("/logout", response_model=RevokeResponse, responses=_ERRORS)
async def logout(
    body: LogoutRequest,
    subject: str | None = Depends(get_token_subject),
    db: AsyncSession = Depends(get_db),
):
    """Sign the user out everywhere."""
    ensure_subject_matches(subject, body.user_id)
    count = await revocation_service.revoke_all_for_user(body.user_id, db)
    return RevokeResponse(revoked=count)


@router.post("/revoke-session", response_model=RevokeResponse, responses=_ERRORS)
async def revoke_session(
    body: RevokeSessionRequest,
    subject: str | None = Depends(get_token_subject),
    db: AsyncSession = Depends(get_db),
):
    """Sign out one of the user's other devices to free a seat."""
    ensure_subject_matches(subject, body.user_id)
    count = await revocation_service.revoke_session(body.session_id, body.user_id, db)
    return RevokeResponse(revoked=count)


@router.get("/active", response_model=ActiveSessionsResponse, responses=_ERRORS)
async def active_sessions(
    user_id: str | None = Query(None),
    subject: str | None = Depends(get_token_subject),
    db: AsyncSession = Depends(get_db),
):
    """List the user's occupied seats, least recently seen first."""
    ensure_subject_matches(subject, user_id)
    sessions = await seat_service.list_active_sessions(user_id, db)
    return ActiveSessionsResponse(
        seat_limit=settings.SEAT_LIMIT,
        sessions=[SessionOut.model_validate(s) for s in sessions],
    )
