"""Client SDK data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass
class ClientConfig:
    base_url: str
    timeout_seconds: float = 10.0
    entry_url: str = "/"
    seat_limit_reason: str = "seat-limit"
    storage_dir: Path = field(default_factory=lambda: Path.home() / ".gapgens")


class AuthEventKind(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    SEAT_REJECTED = "SEAT_REJECTED"


@dataclass(frozen=True)
class AuthEvent:
    kind: AuthEventKind
    user_id: str | None = None
    device_id: str | None = None
    reason: str | None = None
    access_token: str | None = None


@dataclass
class RegistrationResult:
    status: str
    session_id: str | None = None
    evicted_session_id: str | None = None
    reason: str | None = None

    @property
    def rejected(self) -> bool:
        return self.status == "rejected"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistrationResult:
        return cls(
            status=data.get("status") or ("reused" if data.get("reused") else "admitted"),
            session_id=data.get("session_id"),
            evicted_session_id=data.get("evicted_session_id"),
        )
