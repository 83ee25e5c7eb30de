"""Locally cached authentication state."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CREDENTIALS_FILE = "credentials.json"


@dataclass
class AuthState:
    """The signed-in session as the client currently believes it to be."""

    user_id: str | None = None
    access_token: str | None = None

    @property
    def signed_in(self) -> bool:
        return self.user_id is not None

    def set(self, user_id: str, access_token: str | None = None) -> None:
        self.user_id = user_id
        self.access_token = access_token

    def clear(self) -> None:
        self.user_id = None
        self.access_token = None


class CredentialStore:
    """Persisted credentials in `<storage_dir>/credentials.json`."""

    def __init__(self, storage_dir: Path) -> None:
        self._path = Path(storage_dir) / CREDENTIALS_FILE

    @property
    def path(self) -> Path:
        return self._path

    def save(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data), encoding="utf-8")

    def load(self) -> dict[str, Any] | None:
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None

    def clear(self) -> None:
        """Remove persisted credentials.  Clearing twice is fine."""
        self._path.unlink(missing_ok=True)
