"""Persistent per-device identifier."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

DEVICE_FILE = "device.json"


class DeviceIdentity:
    """
    Generates a UUID4 device id the first time it is asked for and
    keeps returning the same value from `<storage_dir>/device.json`.

    Survives sign-outs: credential clearing never touches this file.
    """

    def __init__(self, storage_dir: Path) -> None:
        self._path = Path(storage_dir) / DEVICE_FILE
        self._device_id: str | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> str:
        if self._device_id is None:
            self._device_id = self._load() or self._create()
        return self._device_id

    def _load(self) -> str | None:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            logger.warning("Unreadable device file %s; generating a new id", self._path)
            return None
        device_id = data.get("device_id") if isinstance(data, dict) else None
        return device_id or None

    def _create(self) -> str:
        device_id = str(uuid.uuid4())
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps({"device_id": device_id}), encoding="utf-8")
        return device_id
