"""
Error taxonomy & HTTP mapping.

Services raise these; the handlers below turn them into the
`{success: false, error: ...}` body the browser client expects.
Store-specific exception types never reach the HTTP layer.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SeatError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class InvalidArgument(SeatError):
    """Missing or blank identifier — never retried."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid argument"


class StoreUnavailable(SeatError):
    """Transient persistence failure — safe to retry with backoff."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Session store unavailable"


class ConflictError(SeatError):
    """Token collision or a duplicate active device detected by the store.

    Retried once by the admission policy; a repeat is reported like a
    store outage.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Conflicting session write"


class AuthorizationError(SeatError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid or missing bearer token"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SeatError)
    async def _seat_error_handler(request: Request, exc: SeatError):
        if isinstance(exc, (StoreUnavailable, ConflictError)):
            # Details stay server-side; the client gets a generic retry prompt.
            logger.error(
                "[%s] %s %s failed: %s",
                getattr(request.state, "request_id", "-"),
                request.method,
                request.url.path,
                exc,
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "error": StoreUnavailable.message},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(_: Request, exc: RequestValidationError):
        logger.debug("Rejected request body: %s", exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "Invalid request body"},
        )
