"""Human-readable previews of staged drafts."""

from __future__ import annotations

from datetime import datetime

from replydraft.domain.models import DraftRecord, GatheredContext, PartialWarning

CONTEXT_SUMMARY_MAX_CHARS = 500
_RULE = "━" * 48


def summarize_context(gathered: GatheredContext) -> str:
    """Build the compact context line shown above a draft preview.

    Uses the latest inbound message of the thread, truncated to
    ``CONTEXT_SUMMARY_MAX_CHARS`` characters.
    """
    latest = gathered.thread.latest_inbound()
    if latest is None or not latest.summary.strip():
        return ""
    text = f"{latest.sender} wrote: {latest.summary.strip()}"
    if len(text) > CONTEXT_SUMMARY_MAX_CHARS:
        return text[:CONTEXT_SUMMARY_MAX_CHARS].rstrip() + "..."
    return text


def _minutes_left(expires_at: datetime, now: datetime) -> int:
    seconds = (expires_at - now).total_seconds()
    return max(0, int(-(-seconds // 60)))


def format_preview(
    record: DraftRecord,
    now: datetime,
    warnings: list[PartialWarning] | None = None,
) -> str:
    """Render a staged draft for the user to review before confirming.

    Args:
        record: The staged draft.
        now: The current time, for the remaining-validity note.
        warnings: Non-fatal degradations to surface alongside the draft.

    Returns:
        Multi-line preview text ending with the confirmation token.
    """
    lines = [
        _RULE,
        "EMAIL REPLY DRAFT PREVIEW",
        _RULE,
        "",
        f"Subject: {record.subject}",
        f"To: {', '.join(record.to) or '(no recipient found)'}",
        f"Thread ID: {record.thread_id}",
    ]
    if record.context_summary:
        lines += ["", "Context:", record.context_summary]

    lines += ["", _RULE, "DRAFT MESSAGE:", "", record.body, _RULE]

    if warnings:
        lines += ["", "Notes:"]
        for warning in warnings:
            note = f"- {warning.source} {warning.reason}"
            lines.append(f"{note}: {warning.detail}" if warning.detail else note)

    lines += [
        "",
        "Confirm to create this draft in your mailbox, supply an edited body, or cancel.",
        f"Confirmation token: {record.token}",
        f"This preview expires in {_minutes_left(record.expires_at, now)} minute(s).",
    ]
    return "\n".join(lines)
