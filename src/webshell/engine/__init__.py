"""Command execution engine for webshell.

Public API:
    Runner -- Strategy-based process runner
    ProbeCodec -- Directory probe wrapping and decoding
    Executor -- Per-caller execution and hinting
"""

from webshell.engine.executor import DirectoryApplyFailed, Executor
from webshell.engine.protocol import ProbeCodec, ProtocolDecodeMismatch
from webshell.engine.runner import (
    ExecutionTimeout,
    ExecutionUnavailable,
    Runner,
    RunnerError,
)

__all__ = [
    "DirectoryApplyFailed",
    "ExecutionTimeout",
    "ExecutionUnavailable",
    "Executor",
    "ProbeCodec",
    "ProtocolDecodeMismatch",
    "Runner",
    "RunnerError",
]
