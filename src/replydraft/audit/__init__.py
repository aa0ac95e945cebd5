"""Audit trail: models, storage, and logger for draft lifecycle events."""

from replydraft.audit.logger import AuditLogger
from replydraft.audit.models import AuditEntry, EventType
from replydraft.audit.store import (
    close_audit_db,
    init_audit_db,
    insert_audit_entry,
    query_audit_trail,
)

__all__ = [
    "AuditEntry",
    "AuditLogger",
    "EventType",
    "close_audit_db",
    "init_audit_db",
    "insert_audit_entry",
    "query_audit_trail",
]
