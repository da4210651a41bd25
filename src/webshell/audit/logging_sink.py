"""Audit sink writing to the ``webshell.audit`` logger.

Optionally also appends each event as one JSON line to a file, which
keeps a machine-readable trail independent of log rotation.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from webshell.audit.base import AuditError, AuditSink
from webshell.domain.models import CommandExecuted

audit_logger = logging.getLogger("webshell.audit")


class LoggingAuditSink(AuditSink):
    """Logs every executed command and optionally appends it to a file."""

    def __init__(self, file: Path | str | None = None) -> None:
        self._file = Path(file) if file else None
        self._lock = threading.Lock()

    def record(self, event: CommandExecuted) -> None:
        audit_logger.info(event.describe())
        if self._file is None:
            return
        line = event.model_dump_json() + "\n"
        try:
            with self._lock, open(self._file, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            raise AuditError(f"Failed to append audit event to {self._file}: {e}") from e
