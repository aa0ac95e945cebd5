"""Tests for AuditLogger convenience methods."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from replydraft.audit.logger import AuditLogger
from replydraft.audit.store import close_audit_db, init_audit_db, query_audit_trail
from replydraft.domain.models import DraftRecord, PartialWarning
from replydraft.domain.types import DraftState, ParseConfidence, WarningReason, WarningSource

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

RECORD = DraftRecord(
    thread_id="t-1",
    to=("jane@client.com", "bob@client.com"),
    subject="Re: Pricing",
    body="Hi Jane",
    token="reply_abc",
    created_at=NOW,
    expires_at=NOW + timedelta(minutes=10),
)


@pytest.fixture
def conn():
    connection = init_audit_db(Path(":memory:"))
    yield connection
    close_audit_db(connection)


@pytest.fixture
def audit(conn) -> AuditLogger:
    return AuditLogger(conn)


class TestAuditLogger:
    def test_draft_prepared(self, audit: AuditLogger, conn):
        warnings = [PartialWarning(source=WarningSource.HISTORY, reason=WarningReason.EMPTY)]
        audit.log_draft_prepared(RECORD, ParseConfidence.LOW, warnings)

        row = query_audit_trail(conn, event_type="draft_prepared")[0]
        assert row["token"] == "reply_abc"
        assert row["recipients"] == "jane@client.com, bob@client.com"
        assert row["body"] == "Hi Jane"
        assert row["draft_state"] == "staged"
        assert row["metadata"]["parse_confidence"] == "low"
        assert row["metadata"]["warnings"] == "history:empty"
        assert row["metadata"]["expires_at"] == RECORD.expires_at.isoformat()

    def test_prepare_failed(self, audit: AuditLogger, conn):
        audit.log_prepare_failed(None, "ThreadNotFoundError", "No email thread found")

        row = query_audit_trail(conn, event_type="prepare_failed")[0]
        assert row["token"] is None
        assert row["metadata"] == {
            "error_type": "ThreadNotFoundError",
            "error_message": "No email thread found",
        }

    def test_state_transition_with_reason(self, audit: AuditLogger, conn):
        audit.log_state_transition(
            "reply_abc", "t-1", DraftState.STAGED, DraftState.CANCELLED, "cancel", {"reason": "superseded"}
        )

        row = query_audit_trail(conn, token="reply_abc")[0]
        assert row["draft_state"] == "cancelled"
        assert row["metadata"] == {
            "from_state": "staged",
            "to_state": "cancelled",
            "event": "cancel",
            "reason": "superseded",
        }

    def test_draft_confirmed(self, audit: AuditLogger, conn):
        audit.log_draft_confirmed(RECORD, "Edited body", "draft-9", edited=True)

        row = query_audit_trail(conn, event_type="draft_confirmed")[0]
        assert row["body"] == "Edited body"
        assert row["external_draft_id"] == "draft-9"
        assert row["metadata"] == {"edited": "true"}

    def test_mail_creation_failed(self, audit: AuditLogger, conn):
        audit.log_mail_creation_failed("reply_abc", "t-1", 2, False, "timeout")

        row = query_audit_trail(conn, event_type="mail_creation_failed")[0]
        assert row["draft_state"] == "cancelled"
        assert row["metadata"] == {"attempts": "2", "retryable": "false", "error_message": "timeout"}

    def test_error(self, audit: AuditLogger, conn):
        row_id = audit.log_error("boom", token="reply_abc", context="sweeper")

        assert row_id > 0
        row = query_audit_trail(conn, event_type="error")[0]
        assert row["metadata"] == {"error_message": "boom", "context": "sweeper"}
