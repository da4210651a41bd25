"""Audit trail of executed commands."""

from webshell.audit.base import AuditError, AuditSink
from webshell.audit.logging_sink import LoggingAuditSink

__all__ = ["AuditError", "AuditSink", "LoggingAuditSink"]
