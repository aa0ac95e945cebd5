"""Audit trail models for tracking the lifecycle of reply drafts.

Each entry carries the event type, the confirmation token and thread,
the draft fields at the time of the event, and arbitrary metadata.
"""

from enum import StrEnum

from pydantic import BaseModel


class EventType(StrEnum):
    """Types of events tracked in the audit trail."""

    DRAFT_PREPARED = "draft_prepared"
    PREPARE_FAILED = "prepare_failed"
    STATE_TRANSITION = "state_transition"
    DRAFT_CONFIRMED = "draft_confirmed"
    MAIL_CREATION_FAILED = "mail_creation_failed"
    ERROR = "error"


class AuditEntry(BaseModel):
    """A single audit trail entry.

    All fields except event_type are optional to accommodate different
    event types (e.g., prepare_failed has no token).
    """

    event_type: EventType
    token: str | None = None
    thread_id: str | None = None
    recipients: str | None = None  # Comma-separated addresses
    subject: str | None = None
    body: str | None = None
    draft_state: str | None = None
    external_draft_id: str | None = None
    metadata: dict[str, str] | None = None
