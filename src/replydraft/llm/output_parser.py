"""Recovery of structured draft fields from free-form generator output.

The generator is asked to wrap the body in ``---BEGIN DRAFT---`` /
``---END DRAFT---`` markers, but older prompt styles (a fenced ```email
block, a ``━━━ DRAFT ━━━`` banner) are recognised too.  Parsing never
raises: when structure is missing, the parser falls back to defaults,
records which fallbacks fired, and reports ``ParseConfidence.LOW``.
"""

from __future__ import annotations

import re

import structlog

from replydraft.domain.models import ParsedDraft, ThreadContext
from replydraft.domain.types import ParseConfidence
from replydraft.email.threading import build_reply_headers, normalize_reply_subject

logger = structlog.get_logger()

NO_SUBJECT = "Re: (no subject)"

_SUBJECT_RE = re.compile(
    r"^[ \t]*(?:\*\*)?subject:(?:\*\*)?[ \t]*(.*?)[ \t]*(?:\*\*)?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_REPLY_PREFIX_RE = re.compile(r"^\s*re\s*:", re.IGNORECASE)

# Tried in order; the first that matches wins.
_BODY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "begin_end",
        re.compile(
            r"---\s*BEGIN DRAFT\s*---[ \t]*\n?(.*?)(?:\n?[ \t]*---\s*END DRAFT\s*---|\Z)",
            re.IGNORECASE | re.DOTALL,
        ),
    ),
    (
        "email_fence",
        re.compile(r"```[ \t]*email[ \t]*\n?(.*?)(?:```|\Z)", re.IGNORECASE | re.DOTALL),
    ),
    (
        "banner",
        re.compile(
            r"━{3,}[^\n]*?DRAFT[^\n]*?━{3,}[ \t]*\n?(.*?)(?:\n[ \t]*━{3,}|\Z)",
            re.IGNORECASE | re.DOTALL,
        ),
    ),
)


def _extract_subject(text: str, leading_only: bool = False) -> tuple[str | None, str]:
    """Return the explicit subject (if any) and ``text`` without the tag line.

    With ``leading_only`` the tag is accepted only on the first non-blank
    line, so a quoted ``Subject:`` inside undelimited prose stays in the body.
    """
    if leading_only:
        text = text.lstrip("\n")
        match = _SUBJECT_RE.match(text)
    else:
        match = _SUBJECT_RE.search(text)
    if match is None or not match.group(1).strip():
        return None, text
    remainder = text[: match.start()] + text[match.end() :].lstrip("\n")
    return match.group(1).strip(), remainder


def _find_body(text: str) -> tuple[re.Match[str] | None, str | None]:
    """Return the first delimited body match and the name of its delimiter."""
    for name, pattern in _BODY_PATTERNS:
        match = pattern.search(text)
        if match is not None:
            return match, name
    return None, None


def _resolve_recipients(thread: ThreadContext, agent_email: str) -> tuple[tuple[str, ...], str | None]:
    """Pick reply recipients, returning them with the name of the rule used."""
    if thread.primary_recipient:
        return (thread.primary_recipient,), None
    latest = thread.latest_inbound()
    if latest is not None and latest.sender:
        return (latest.sender,), "recipient_latest_sender"
    agent = agent_email.lower()
    others = tuple(p for p in thread.participants if p and p.lower() != agent)
    if others:
        return others, "recipient_participants"
    return (), "recipient_missing"


def parse_generator_output(
    raw_output: str | None,
    thread_context: ThreadContext,
    agent_email: str = "",
) -> ParsedDraft:
    """Extract recipients, subject, threading headers and body from generator output.

    Subject: an explicit ``SUBJECT:`` line wins; otherwise ``Re: <thread
    subject>`` with stacked ``Re:`` prefixes collapsed.  Recipients: the
    thread's primary recipient, else the latest inbound sender, else every
    non-assistant participant.  Body: the first recognised delimited block,
    else the whole output minus a leading subject line.  A ``Subject:``
    line inside the body is body text, never the draft subject.

    Args:
        raw_output: The generator's raw text.  ``None`` is treated as empty.
        thread_context: The thread being replied to.
        agent_email: The assistant's own mailbox, excluded from recipients.

    Returns:
        The parsed draft.  ``confidence`` is ``LOW`` when the body was not
        delimited, the body is empty, or no recipient could be found.
    """
    text = (raw_output or "").replace("\r\n", "\n")
    fallbacks: list[str] = []
    confidence = ParseConfidence.HIGH

    body_match, delimiter = _find_body(text)
    if body_match is not None:
        # Only text outside the delimited block may carry the subject tag.
        outside = text[: body_match.start()] + "\n" + text[body_match.end() :]
        explicit_subject, _ = _extract_subject(outside)
        body = body_match.group(1).strip()
    else:
        explicit_subject, text = _extract_subject(text, leading_only=True)
        body = text.strip()
        fallbacks.append("body_undelimited")
        confidence = ParseConfidence.LOW

    if explicit_subject is not None:
        subject = explicit_subject
        if _REPLY_PREFIX_RE.match(subject):
            subject = normalize_reply_subject(subject)
    else:
        subject = normalize_reply_subject(thread_context.subject)
        if not subject:
            subject = NO_SUBJECT
            fallbacks.append("subject_default")

    if not body:
        fallbacks.append("body_empty")
        confidence = ParseConfidence.LOW

    recipients, recipient_rule = _resolve_recipients(thread_context, agent_email)
    if recipient_rule is not None:
        fallbacks.append(recipient_rule)
    if not recipients:
        confidence = ParseConfidence.LOW

    parsed = ParsedDraft(
        to=recipients,
        subject=subject,
        body=body,
        headers=build_reply_headers(thread_context),
        confidence=confidence,
        fallbacks=tuple(fallbacks),
    )
    logger.debug(
        "generator_output_parsed",
        thread_id=thread_context.thread_id,
        delimiter=delimiter,
        confidence=confidence,
        fallbacks=parsed.fallbacks,
        body_chars=len(body),
    )
    return parsed
