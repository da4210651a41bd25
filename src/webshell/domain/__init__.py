"""Domain models for webshell.

This package contains the data structures and enumerations shared by
the execution engine, the collaborators and the web transport.
"""

from webshell.domain.models import (
    CommandExecuted,
    ExecutionRequest,
    ExecutionResult,
    HintKind,
    HintQuery,
    HintResult,
    Platform,
    SessionState,
)

__all__ = [
    "CommandExecuted",
    "ExecutionRequest",
    "ExecutionResult",
    "HintKind",
    "HintQuery",
    "HintResult",
    "Platform",
    "SessionState",
]
