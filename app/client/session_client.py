"""Seat session HTTP client (httpx)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.core.exceptions import AuthorizationError, InvalidArgument, StoreUnavailable

from .events import AuthEventChannel
from .models import AuthEvent, AuthEventKind, ClientConfig, RegistrationResult

logger = logging.getLogger(__name__)


class SeatSessionClient:
    """Calls `/session/*` on the seat control service."""

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    def _make_client(self, access_token: str | None = None) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            headers=headers,
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )

    @staticmethod
    def _json(resp: httpx.Response) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _error_message(self, resp: httpx.Response) -> str:
        return self._json(resp).get("error") or resp.text

    def _handle_error(self, resp: httpx.Response, context: str) -> None:
        if resp.status_code == 400:
            raise InvalidArgument(f"{context}: {self._error_message(resp)}")
        if resp.status_code in (401, 403):
            raise AuthorizationError(
                f"{context}: {self._error_message(resp)}",
                status_code=resp.status_code,
            )
        if resp.status_code >= 400:
            raise StoreUnavailable(f"{context}: HTTP {resp.status_code}")

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        context: str,
        access_token: str | None = None,
    ) -> httpx.Response:
        try:
            async with self._make_client(access_token) as client:
                return await client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise StoreUnavailable(f"{context}: {e}") from e

    async def register(
        self,
        user_id: str,
        device_id: str,
        access_token: str | None = None,
    ) -> RegistrationResult:
        """Register this device; a seat-limit 403 comes back as a rejected result."""
        resp = await self._post(
            "/session/register",
            {"user_id": user_id, "device_id": device_id},
            "register",
            access_token,
        )
        if resp.status_code == 403:
            data = self._json(resp)
            if data.get("reason") == self._config.seat_limit_reason:
                return RegistrationResult(status="rejected", reason=data["reason"])
        self._handle_error(resp, "register")
        return RegistrationResult.from_dict(self._json(resp))

    async def revoke_device(self, device_id: str, user_id: str | None = None) -> int:
        payload: dict[str, Any] = {"device_id": device_id}
        if user_id:
            payload["user_id"] = user_id
        resp = await self._post("/session/revoke", payload, "revoke_device")
        self._handle_error(resp, "revoke_device")
        return int(self._json(resp).get("revoked", 0))

    async def logout(self, user_id: str, access_token: str | None = None) -> int:
        resp = await self._post("/session/logout", {"user_id": user_id}, "logout", access_token)
        self._handle_error(resp, "logout")
        return int(self._json(resp).get("revoked", 0))

    def register_on_sign_in(self, channel: AuthEventChannel) -> None:
        """
        Subscribe seat registration to `SIGNED_IN`.  A rejected result is
        re-published as `SEAT_REJECTED` for the enforcement hook.
        """

        async def _on_signed_in(event: AuthEvent) -> None:
            if not event.user_id or not event.device_id:
                return
            try:
                result = await self.register(
                    event.user_id,
                    event.device_id,
                    access_token=event.access_token,
                )
            except StoreUnavailable:
                # Transient: leave the user signed in, next sign-in retries.
                logger.warning("Session registration failed for %s", event.user_id, exc_info=True)
                return
            except AuthorizationError:
                # The provider token was refused; the sign-in flow owns that failure.
                logger.warning("Session registration unauthorized for %s", event.user_id, exc_info=True)
                return
            if result.rejected:
                logger.warning("Seat limit reached. Forcing logout.")
                await channel.publish(
                    AuthEvent(
                        kind=AuthEventKind.SEAT_REJECTED,
                        user_id=event.user_id,
                        device_id=event.device_id,
                        reason=result.reason,
                    )
                )

        channel.subscribe(AuthEventKind.SIGNED_IN, _on_signed_in)
