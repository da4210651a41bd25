"""YAML-file preference store.

Persists preferences across server restarts in a single YAML document
laid out as ``{caller: {key: value}}``. Writes go to a temporary file
that replaces the original, so a crash never leaves a half-written
document behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path

import yaml

from webshell.preferences.base import PreferenceStore, PreferenceStoreError

logger = logging.getLogger(__name__)


class YamlPreferenceStore(PreferenceStore):
    """Preference store backed by a YAML file."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, caller: str) -> str | None:
        with self._lock:
            value = self._load().get(caller, {}).get(key)
        return None if value is None else str(value)

    def set(self, key: str, caller: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data.setdefault(caller, {})[key] = value
            self._dump(data)
        logger.debug("Stored %s for %s in %s", key, caller, self._path)

    def delete(self, key: str, caller: str) -> None:
        with self._lock:
            data = self._load()
            prefs = data.get(caller)
            if not prefs or key not in prefs:
                return
            del prefs[key]
            if not prefs:
                del data[caller]
            self._dump(data)

    def _load(self) -> dict[str, dict[str, str]]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise PreferenceStoreError(
                f"Failed to read preferences from {self._path}: {e}", backend="yaml"
            ) from e
        if not isinstance(data, dict):
            raise PreferenceStoreError(
                f"Malformed preferences file {self._path}", backend="yaml"
            )
        return data

    def _dump(self, data: dict[str, dict[str, str]]) -> None:
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=directory, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PreferenceStoreError(
                f"Failed to write preferences to {self._path}: {e}", backend="yaml"
            ) from e
