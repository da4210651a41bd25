"""Abstract base class for per-caller preference storage.

The shell session keeps each caller's last verified working directory
here between otherwise stateless calls. Implementations must be safe to
use from several request threads at once.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

CURRENT_DIR_KEY = "webshell_current_dir"


class PreferenceStore(ABC):
    """Abstract string key-value store scoped by caller identity.

    Example usage::

        store = MemoryPreferenceStore()
        store.set(CURRENT_DIR_KEY, "alice", "/srv")
        store.get(CURRENT_DIR_KEY, "alice")   # "/srv"
        store.delete(CURRENT_DIR_KEY, "alice")
    """

    @abstractmethod
    def get(self, key: str, caller: str) -> str | None:
        """Return the stored value, or None if the caller has none.

        Raises:
            PreferenceStoreError: If the backing storage cannot be read.
        """
        ...

    @abstractmethod
    def set(self, key: str, caller: str, value: str) -> None:
        """Store ``value`` under ``key`` for ``caller``, replacing any previous value.

        Raises:
            PreferenceStoreError: If the value cannot be persisted.
        """
        ...

    @abstractmethod
    def delete(self, key: str, caller: str) -> None:
        """Forget ``key`` for ``caller``. A missing key is not an error."""
        ...


class PreferenceStoreError(Exception):
    """Raised when preferences cannot be read or written."""

    def __init__(self, message: str, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend
