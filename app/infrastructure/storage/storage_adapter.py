from __future__ import annotations

import json
import logging
from typing import Any

from app.application.ports.key_value_backend_port import KeyValueBackendPort


logger = logging.getLogger(__name__)


class StorageAdapter:
    """Key/value access to persistent client storage that never raises.

    ``backend=None`` models an environment without storage; every read then
    returns the default and every write reports failure.
    """

    def __init__(self, backend: KeyValueBackendPort | None):
        self._backend = backend

    @property
    def available(self) -> bool:
        return self._backend is not None

    def read(self, key: str, default: Any = None) -> Any:
        if self._backend is None:
            return default
        try:
            raw = self._backend.get_item(key)
        except Exception as exc:
            logger.warning("storage: read_failed key=%s error=%s", key, exc)
            return default
        if raw is None:
            return default
        try:
            value = json.loads(raw)
        except ValueError:
            # Unencoded text left by earlier writers.
            return raw
        return default if value is None else value

    def write(self, key: str, value: Any) -> bool:
        if self._backend is None:
            return False
        try:
            self._backend.set_item(key, json.dumps(value, default=str))
        except Exception as exc:
            logger.warning("storage: write_failed key=%s error=%s", key, exc)
            return False
        return True

    def remove(self, key: str) -> bool:
        if self._backend is None:
            return False
        try:
            self._backend.remove_item(key)
        except Exception as exc:
            logger.warning("storage: remove_failed key=%s error=%s", key, exc)
            return False
        return True
