"""Email thread context extraction and reply header management.

Provides helpers for:
- Building a ``ThreadContext`` from a Gmail API thread response
- Normalising reply subjects so ``Re:`` prefixes never stack
- Building RFC 2822 reply headers for threaded replies
"""

from __future__ import annotations

import email.utils
import re
from typing import Any

from replydraft.domain.models import ThreadContext, ThreadingHeaders, ThreadMessage
from replydraft.email.parser import extract_latest_reply, extract_payload_text

SUMMARY_MAX_CHARS = 500

_RE_PREFIX = re.compile(r"^(\s*re\s*:\s*)+", re.IGNORECASE)


def header_map(headers: list[dict[str, str]]) -> dict[str, str]:
    """Index Gmail ``payload.headers`` by lower-cased header name."""
    return {h.get("name", "").lower(): h.get("value", "") for h in headers}


def parse_address(value: str) -> str:
    """Return the bare, lower-cased address from ``"Name <addr>"`` or ``"addr"``."""
    _, addr = email.utils.parseaddr(value or "")
    return addr.lower()


def parse_address_list(value: str) -> list[str]:
    """Return the bare, lower-cased addresses of a comma-separated header."""
    return [addr.lower() for _, addr in email.utils.getaddresses([value or ""]) if addr]


def normalize_reply_subject(subject: str) -> str:
    """Return ``subject`` prefixed with exactly one ``Re: ``.

    Existing ``Re:`` prefixes are collapsed case-insensitively, so
    ``"RE: re: Pricing"`` becomes ``"Re: Pricing"``.  An empty subject
    yields an empty string.
    """
    base = _RE_PREFIX.sub("", subject or "").strip()
    if not base:
        return ""
    return f"Re: {base}"


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def _message_from_api(message: dict[str, Any], agent_email: str) -> tuple[ThreadMessage, list[str]]:
    payload = message.get("payload", {}) or {}
    headers = header_map(payload.get("headers", []) or [])
    sender = parse_address(headers.get("from", ""))
    recipients = parse_address_list(headers.get("to", "")) + parse_address_list(
        headers.get("cc", "")
    )

    body = extract_payload_text(payload)
    summary = extract_latest_reply(body).strip() if body else ""
    if not summary:
        summary = message.get("snippet", "")
    if len(summary) > SUMMARY_MAX_CHARS:
        summary = summary[:SUMMARY_MAX_CHARS].rstrip() + "..."

    sent_label = "SENT" in (message.get("labelIds") or [])
    inbound = not sent_label and (not agent_email or sender != agent_email)

    thread_message = ThreadMessage(
        message_id=headers.get("message-id", ""),
        sender=sender,
        recipients=tuple(recipients),
        sent_at=headers.get("date", ""),
        summary=summary,
        inbound=inbound,
    )
    references = headers.get("references", "").split()
    return thread_message, references


def thread_context_from_api(thread: dict[str, Any], agent_email: str = "") -> ThreadContext:
    """Build a ``ThreadContext`` from a Gmail ``users.threads.get`` response.

    Expects ``format="full"`` so that bodies can be summarised; with
    ``format="metadata"`` the message ``snippet`` is used instead.

    The subject is taken from the first message (the thread's original
    subject).  Threading identifiers and the primary recipient come from
    the most recent *inbound* message, i.e. the latest one not sent from
    the assistant's own mailbox.  If the thread contains only outbound
    messages, the first recipient of the latest message is used.

    Args:
        thread: The Gmail API thread resource.
        agent_email: The mailbox address drafts are created for.

    Returns:
        An immutable ``ThreadContext``.
    """
    agent = agent_email.lower()
    raw_messages = thread.get("messages", []) or []

    messages: list[ThreadMessage] = []
    references_by_index: list[list[str]] = []
    for raw in raw_messages:
        message, references = _message_from_api(raw, agent)
        messages.append(message)
        references_by_index.append(references)

    subject = ""
    if raw_messages:
        first_headers = header_map((raw_messages[0].get("payload", {}) or {}).get("headers", []) or [])
        last_headers = header_map((raw_messages[-1].get("payload", {}) or {}).get("headers", []) or [])
        subject = first_headers.get("subject") or last_headers.get("subject", "")

    participants = _dedupe(
        [a for m in messages for a in (m.sender, *m.recipients) if a and a != agent]
    )

    latest_message_id: str | None = None
    references: list[str] = []
    primary_recipient: str | None = None
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].inbound:
            latest_message_id = messages[index].message_id or None
            references = references_by_index[index]
            primary_recipient = messages[index].sender or None
            break
    else:
        if messages:
            latest_message_id = messages[-1].message_id or None
            references = references_by_index[-1]
            outbound_to = [r for r in messages[-1].recipients if r != agent]
            primary_recipient = outbound_to[0] if outbound_to else None

    return ThreadContext(
        thread_id=thread.get("id", ""),
        subject=subject,
        messages=tuple(messages),
        participants=tuple(participants),
        latest_message_id=latest_message_id,
        references=tuple(_dedupe(references)),
        primary_recipient=primary_recipient,
    )


def build_reply_headers(thread_ctx: ThreadContext) -> ThreadingHeaders:
    """Build RFC 2822 reply headers from an existing thread context.

    ``In-Reply-To`` is the latest inbound Message-ID; ``References`` is the
    thread's references chain followed by that Message-ID, de-duplicated.
    A thread without Message-IDs yields empty headers.

    Args:
        thread_ctx: The thread being replied to.

    Returns:
        The threading headers for the reply.
    """
    chain = list(thread_ctx.references)
    if thread_ctx.latest_message_id:
        chain.append(thread_ctx.latest_message_id)
    chain = _dedupe(chain)

    return ThreadingHeaders(
        in_reply_to=thread_ctx.latest_message_id or None,
        references=" ".join(chain) or None,
    )
