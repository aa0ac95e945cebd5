"""Live integration tests for Gmail API operations.

These tests read the real mailbox and create (never send) a draft.  They
require valid OAuth2 credentials (token.json) and AGENT_EMAIL to be
configured in environment variables.

Run with: pytest -m live -k gmail
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from replydraft.domain.models import ThreadingHeaders


@pytest.mark.live
def test_gmail_search_and_fetch_thread(gmail_client, agent_email):
    """Search the mailbox and fetch the newest matching thread in full."""
    candidates = gmail_client.search_threads(f"to:{agent_email} OR from:{agent_email}", max_results=3)
    if not candidates:
        pytest.skip("Mailbox has no threads to fetch")

    thread = gmail_client.fetch_thread(candidates[0].thread_id)

    assert thread.thread_id == candidates[0].thread_id
    assert thread.messages, "Expected at least one message in the fetched thread"


@pytest.mark.live
def test_gmail_create_draft_to_self(gmail_client, agent_email):
    """Create an unthreaded draft addressed to self; it is left in Drafts."""
    subject = f"[LIVE TEST] Draft {datetime.now(tz=UTC).isoformat()}"

    draft_id = gmail_client.create_mail_draft(
        (agent_email,),
        subject,
        "This is an automated live test draft. Safe to delete.",
        ThreadingHeaders(),
    )

    assert draft_id, "Expected a Gmail draft ID"
