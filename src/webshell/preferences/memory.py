"""In-process preference store. State is lost when the server stops."""

from __future__ import annotations

import logging
import threading

from webshell.preferences.base import PreferenceStore

logger = logging.getLogger(__name__)


class MemoryPreferenceStore(PreferenceStore):
    """Keeps preferences in a dict guarded by a lock."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, caller: str) -> str | None:
        with self._lock:
            return self._data.get(caller, {}).get(key)

    def set(self, key: str, caller: str, value: str) -> None:
        with self._lock:
            self._data.setdefault(caller, {})[key] = value
        logger.debug("Set %s for %s", key, caller)

    def delete(self, key: str, caller: str) -> None:
        with self._lock:
            prefs = self._data.get(caller)
            if prefs is not None:
                prefs.pop(key, None)
