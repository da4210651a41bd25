"""Shared test fixtures for the webshell test suite.

Provides a scratch workspace laid out like a small project directory,
a mock runner for isolating the executor from the host, and settings
with a known bearer token.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from webshell.config.settings import AuthConfig, Settings
from webshell.engine.runner import Runner
from webshell.preferences.memory import MemoryPreferenceStore

TEST_TOKEN = "test-token"
TEST_CALLER = "alice"


# ---------------------------------------------------------------------------
# Filesystem Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A canonical scratch directory with a file, a subdirectory and a script.

    Layout::

        workspace/
            executor_test.py
            ressources/
                path_change.sh   # prints, then cds to the workspace parent
    """
    root = (tmp_path / "workspace").resolve()
    root.mkdir()
    (root / "executor_test.py").write_text("# placeholder\n")
    resources = root / "ressources"
    resources.mkdir()
    (resources / "path_change.sh").write_text('echo "path change"\ncd ..\n')
    return root


# ---------------------------------------------------------------------------
# Mock Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_runner() -> MagicMock:
    """A mock Runner; configure ``run.side_effect`` or ``run.return_value``."""
    runner = MagicMock(spec=Runner)
    runner.run.return_value = ""
    return runner


@pytest.fixture
def preferences() -> MemoryPreferenceStore:
    return MemoryPreferenceStore()


@pytest.fixture
def mock_audit() -> MagicMock:
    return MagicMock()


# ---------------------------------------------------------------------------
# Settings Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings with one bearer token for ``alice`` and one for ``mallory``.

    Only ``alice`` holds the run-shell privilege.
    """
    return Settings(
        auth=AuthConfig(
            tokens={TEST_TOKEN: TEST_CALLER, "other-token": "mallory"},
            runshell_callers=[TEST_CALLER],
        )
    )


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_TOKEN}"}
