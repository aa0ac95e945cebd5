"""Convenience class for inserting audit trail entries.

Every draft lifecycle event is logged: prepares (successful or not),
state transitions, confirmations, failed mail-creation hand-offs, and
errors.  Each method creates a properly structured :class:`AuditEntry` and
inserts it via :func:`insert_audit_entry`.
"""

from __future__ import annotations

import sqlite3

from replydraft.audit.models import AuditEntry, EventType
from replydraft.audit.store import insert_audit_entry
from replydraft.domain.models import DraftRecord, PartialWarning


class AuditLogger:
    """Typed convenience API for inserting audit entries.

    Args:
        conn: An open SQLite connection to the audit database.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def log_draft_prepared(
        self,
        record: DraftRecord,
        parse_confidence: str,
        warnings: list[PartialWarning] | None = None,
    ) -> int:
        """Log a freshly staged draft.

        Args:
            record: The staged draft.
            parse_confidence: ``high`` or ``low``.
            warnings: Non-fatal degradations attached to the prepare result.

        Returns:
            The row ID of the inserted audit entry.
        """
        metadata = {
            "parse_confidence": str(parse_confidence),
            "expires_at": record.expires_at.isoformat(),
        }
        if warnings:
            metadata["warnings"] = ",".join(f"{w.source}:{w.reason}" for w in warnings)

        entry = AuditEntry(
            event_type=EventType.DRAFT_PREPARED,
            token=record.token,
            thread_id=record.thread_id,
            recipients=", ".join(record.to),
            subject=record.subject,
            body=record.body,
            draft_state="staged",
            metadata=metadata,
        )
        return insert_audit_entry(self._conn, entry)

    def log_prepare_failed(
        self,
        thread_id: str | None,
        error_type: str,
        error_message: str,
    ) -> int:
        """Log a prepare cycle that ended without staging a draft.

        Args:
            thread_id: The thread hint, if one was given.
            error_type: Exception class name (e.g. ``AmbiguousTargetError``).
            error_message: The error message.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.PREPARE_FAILED,
            thread_id=thread_id,
            draft_state="none",
            metadata={"error_type": error_type, "error_message": error_message},
        )
        return insert_audit_entry(self._conn, entry)

    def log_state_transition(
        self,
        token: str,
        thread_id: str | None,
        from_state: str,
        to_state: str,
        event: str,
        metadata: dict[str, str] | None = None,
    ) -> int:
        """Log a draft lifecycle transition.

        Stores from_state, to_state, and event in metadata.

        Returns:
            The row ID of the inserted audit entry.
        """
        meta = {"from_state": str(from_state), "to_state": str(to_state), "event": str(event)}
        if metadata:
            meta.update(metadata)

        entry = AuditEntry(
            event_type=EventType.STATE_TRANSITION,
            token=token,
            thread_id=thread_id,
            draft_state=str(to_state),
            metadata=meta,
        )
        return insert_audit_entry(self._conn, entry)

    def log_draft_confirmed(
        self,
        record: DraftRecord,
        body: str,
        external_draft_id: str,
        edited: bool,
    ) -> int:
        """Log a draft handed to the mailbox after confirmation.

        Args:
            record: The claimed draft.
            body: The body actually created (edited or original).
            external_draft_id: The mailbox's ID for the created draft.
            edited: Whether the user replaced the staged body.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.DRAFT_CONFIRMED,
            token=record.token,
            thread_id=record.thread_id,
            recipients=", ".join(record.to),
            subject=record.subject,
            body=body,
            draft_state="confirmed",
            external_draft_id=external_draft_id,
            metadata={"edited": str(edited).lower()},
        )
        return insert_audit_entry(self._conn, entry)

    def log_mail_creation_failed(
        self,
        token: str,
        thread_id: str | None,
        attempts: int,
        retryable: bool,
        error_message: str,
    ) -> int:
        """Log a failed hand-off to the mail-creation capability.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.MAIL_CREATION_FAILED,
            token=token,
            thread_id=thread_id,
            draft_state="staged" if retryable else "cancelled",
            metadata={
                "attempts": str(attempts),
                "retryable": str(retryable).lower(),
                "error_message": error_message,
            },
        )
        return insert_audit_entry(self._conn, entry)

    def log_error(
        self,
        error_message: str,
        token: str | None = None,
        thread_id: str | None = None,
        context: str | None = None,
    ) -> int:
        """Log an error encountered during processing.

        Args:
            error_message: The error message.
            token: Confirmation token (if available).
            thread_id: Thread ID (if available).
            context: Additional context about where the error occurred.

        Returns:
            The row ID of the inserted audit entry.
        """
        meta: dict[str, str] = {"error_message": error_message}
        if context is not None:
            meta["context"] = context

        entry = AuditEntry(
            event_type=EventType.ERROR,
            token=token,
            thread_id=thread_id,
            metadata=meta,
        )
        return insert_audit_entry(self._conn, entry)
