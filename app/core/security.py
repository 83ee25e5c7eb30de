"""
Session tokens & auth-provider JWT verification.

- Session tokens are opaque `secrets.token_urlsafe` values; the store's
  UNIQUE constraint is the final word on collisions.
- Bearer verification is optional: with no `AUTH_JWT_SECRET` configured
  the endpoints trust the `user_id` in the body.  When configured, the
  provider-issued JWT's `sub` must match the user being acted on.
"""

import secrets
from typing import Any

from fastapi import Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.exceptions import AuthorizationError

bearer_scheme = HTTPBearer(auto_error=False)


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def decode_provider_token(token: str) -> dict[str, Any]:
    """Decode & validate an auth-provider JWT.  Raises AuthorizationError."""
    options = {"verify_aud": bool(settings.AUTH_JWT_AUDIENCE)}
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE or None,
            options=options,
        )
    except JWTError:
        raise AuthorizationError("Invalid or expired token")


async def get_token_subject(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """
    FastAPI dependency — returns the verified `sub`, or None when bearer
    verification is switched off.
    """
    if not settings.AUTH_JWT_SECRET:
        return None
    if credentials is None:
        raise AuthorizationError("Missing bearer token")

    payload = decode_provider_token(credentials.credentials)
    subject = payload.get("sub")
    if not subject:
        raise AuthorizationError("Invalid token payload — missing subject")
    return str(subject)


def ensure_subject_matches(subject: str | None, user_id: str | None) -> None:
    """403 when a verified token acts on someone else's sessions."""
    if subject is not None and user_id and subject != user_id:
        raise AuthorizationError(
            "Token subject does not match user_id",
            status_code=status.HTTP_403_FORBIDDEN,
        )
