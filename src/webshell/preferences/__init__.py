"""Per-caller preference storage for webshell.

Public API:
    PreferenceStore -- Abstract base class
    MemoryPreferenceStore -- In-process store
    YamlPreferenceStore -- YAML-file store
    create_preference_store -- Build the configured backend
"""

from __future__ import annotations

from webshell.config.settings import PreferencesConfig
from webshell.preferences.base import CURRENT_DIR_KEY, PreferenceStore, PreferenceStoreError
from webshell.preferences.memory import MemoryPreferenceStore
from webshell.preferences.yaml_file import YamlPreferenceStore

__all__ = [
    "CURRENT_DIR_KEY",
    "MemoryPreferenceStore",
    "PreferenceStore",
    "PreferenceStoreError",
    "YamlPreferenceStore",
    "create_preference_store",
]


def create_preference_store(config: PreferencesConfig | None = None) -> PreferenceStore:
    if config is None:
        config = PreferencesConfig()
    if config.backend == "yaml":
        return YamlPreferenceStore(config.path)
    return MemoryPreferenceStore()
