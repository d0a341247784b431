"""Structured logging utilities."""

from .audit import AuditEvent, JsonlAuditLogger, command_metadata, utc_timestamp

__all__ = ["AuditEvent", "JsonlAuditLogger", "command_metadata", "utc_timestamp"]
