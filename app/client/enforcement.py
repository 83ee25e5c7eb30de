"""
Seat enforcement hook — forced local logout after a seat rejection.

Order matters: local state is cleared BEFORE any network call, so a
dead network can never leave a rejected device signed in.  Running
the hook again is harmless.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from app.core.exceptions import SeatError

from .credentials import AuthState, CredentialStore
from .events import AuthEventChannel
from .models import AuthEvent, AuthEventKind, ClientConfig
from .session_client import SeatSessionClient

logger = logging.getLogger(__name__)

ERROR_PARAM = "error"


def with_reason(url: str, reason: str) -> str:
    """Append `error=<reason>` to `url`, keeping any existing query."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != ERROR_PARAM]
    query.append((ERROR_PARAM, reason))
    return urlunsplit(parts._replace(query=urlencode(query)))


def dismiss_notice(url: str) -> str:
    """Drop the `error` parameter once the notice has been dismissed."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != ERROR_PARAM]
    return urlunsplit(parts._replace(query=urlencode(query)))


class SeatEnforcementHook:
    def __init__(
        self,
        config: ClientConfig,
        auth_state: AuthState,
        credentials: CredentialStore,
        navigate: Callable[[str], None],
        session_client: SeatSessionClient | None = None,
    ) -> None:
        self._config = config
        self._auth_state = auth_state
        self._credentials = credentials
        self._navigate = navigate
        self._session_client = session_client
        self._channel: AuthEventChannel | None = None

    def attach(self, channel: AuthEventChannel) -> None:
        self._channel = channel
        channel.subscribe(AuthEventKind.SEAT_REJECTED, self.on_seat_rejected)

    async def on_seat_rejected(self, event: AuthEvent) -> str:
        reason = event.reason or self._config.seat_limit_reason
        user_id = event.user_id or self._auth_state.user_id

        self._auth_state.clear()
        try:
            self._credentials.clear()
        except OSError:
            logger.warning("Could not remove %s", self._credentials.path, exc_info=True)

        if self._session_client is not None and event.device_id:
            try:
                await self._session_client.revoke_device(event.device_id, user_id=user_id)
            except SeatError:
                logger.warning("Best-effort device revoke failed", exc_info=True)

        target = with_reason(self._config.entry_url, reason)
        self._navigate(target)

        if self._channel is not None:
            await self._channel.publish(
                AuthEvent(
                    kind=AuthEventKind.SIGNED_OUT,
                    user_id=user_id,
                    device_id=event.device_id,
                    reason=reason,
                )
            )
        return target
