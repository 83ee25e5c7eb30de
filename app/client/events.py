"""
Auth event channel.

An explicit publish/subscribe seam between the sign-in flow and the
components reacting to it (seat registration, forced logout).  Each
subscriber receives the event object; nothing reads ambient globals.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .models import AuthEvent, AuthEventKind

logger = logging.getLogger(__name__)

Subscriber = Callable[[AuthEvent], Awaitable[None]]


class AuthEventChannel:
    def __init__(self) -> None:
        self._subscribers: dict[AuthEventKind, list[Subscriber]] = {}

    def subscribe(self, kind: AuthEventKind, subscriber: Subscriber) -> Callable[[], None]:
        """Register `subscriber` for `kind`; returns an unsubscribe callable."""
        self._subscribers.setdefault(kind, []).append(subscriber)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(kind, [])
            if subscriber in handlers:
                handlers.remove(subscriber)

        return unsubscribe

    async def publish(self, event: AuthEvent) -> None:
        """Deliver to every subscriber; one failing handler does not stop the rest."""
        for subscriber in list(self._subscribers.get(event.kind, [])):
            try:
                await subscriber(event)
            except Exception:
                logger.exception("Auth event subscriber failed for %s", event.kind.value)
