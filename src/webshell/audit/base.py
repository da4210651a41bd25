"""Abstract base class for audit event sinks.

Every successfully executed command is recorded exactly once. Hint
lookups are never recorded.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from webshell.domain.models import CommandExecuted


class AuditSink(ABC):
    """Abstract interface for recording executed commands."""

    @abstractmethod
    def record(self, event: CommandExecuted) -> None:
        """Record an immutable audit event.

        Raises:
            AuditError: If the event cannot be recorded.
        """
        ...


class AuditError(Exception):
    """Raised when an audit event cannot be recorded."""
