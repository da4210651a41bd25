"""Per-caller shell session.

Glues the executor to the caller's stored working directory and to the
audit trail. A session object lives for exactly one request: it reads
the stored directory, enters it, does the work, and writes back what
changed.
"""

from __future__ import annotations

import logging

from webshell.audit.base import AuditSink
from webshell.domain.models import (
    CommandExecuted,
    ExecutionResult,
    HintKind,
    HintResult,
    SessionState,
)
from webshell.engine.executor import Executor
from webshell.preferences.base import CURRENT_DIR_KEY, PreferenceStore

logger = logging.getLogger(__name__)


class ShellSession:
    """One caller's view of the shell for the duration of a request."""

    def __init__(
        self,
        caller: str,
        preferences: PreferenceStore,
        audit: AuditSink,
        executor: Executor,
    ) -> None:
        self._caller = caller
        self._preferences = preferences
        self._audit = audit
        self._executor = executor

    @property
    def caller(self) -> str:
        return self._caller

    @property
    def working_directory(self) -> str:
        return self._executor.get_working_dir()

    def identity(self) -> str:
        return self._executor.identity()

    def stored_state(self) -> SessionState | None:
        path = self._preferences.get(CURRENT_DIR_KEY, self._caller)
        if path is None:
            return None
        return SessionState(working_directory=path)

    def apply_state(self) -> str:
        """Enter the caller's stored directory and return where we are.

        The first call for a caller stores the live directory. A stored
        directory that vanished is replaced by the live one so later calls
        do not retry it.
        """
        state = self.stored_state()
        if state is None:
            state = SessionState(working_directory=self._executor.get_working_dir())
            self._store(state)

        if not self._executor.cwd(state.working_directory):
            logger.info(
                "Stored directory %s for %s is gone, resetting",
                state.working_directory, self._caller,
            )
            self._store(SessionState(working_directory=self._executor.get_working_dir()))
        return self._executor.get_working_dir()

    def state(self) -> SessionState:
        """Current session state, as shown when the shell page loads."""
        return SessionState(working_directory=self.apply_state())

    def run(self, command: str) -> ExecutionResult:
        """Execute ``command`` and persist the resulting directory."""
        applied = self.apply_state()
        result = self._executor.execute(command)
        if result.working_directory != applied:
            self._store(SessionState(working_directory=result.working_directory))
        self._audit.record(CommandExecuted(command=command, caller=self._caller))
        return result

    def hint(self, value: str, kind: HintKind | str = HintKind.BINARY) -> HintResult:
        self.apply_state()
        return HintResult(matches=self._executor.hint(value, kind))

    def reset(self) -> None:
        """Forget the stored directory; the next call starts afresh."""
        self._preferences.delete(CURRENT_DIR_KEY, self._caller)
        logger.info("Reset working directory for %s", self._caller)

    def _store(self, state: SessionState) -> None:
        self._preferences.set(CURRENT_DIR_KEY, self._caller, state.working_directory)
