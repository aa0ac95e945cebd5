"""Gmail payload decoding and reply text extraction.

Provides helpers for:
- Decoding the text body out of a Gmail API ``format="full"`` payload
- Extracting only the latest reply from a multi-message email body
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any

from mailparser_reply import EmailReplyParser  # type: ignore[import-untyped]

_TAG_RE = re.compile(r"<[^>]+>")


def _decode_part_data(data: str) -> str:
    """Decode a base64url ``body.data`` field, tolerating missing padding."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def _walk_parts(payload: dict[str, Any]) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [payload]
    for part in payload.get("parts", []) or []:
        parts.extend(_walk_parts(part))
    return parts


def extract_payload_text(payload: dict[str, Any]) -> str:
    """Extract the text body from a Gmail API message payload.

    Walks the (possibly nested) MIME part tree returned by
    ``users.messages.get`` / ``users.threads.get`` with ``format="full"``.
    Prefers the first ``text/plain`` part; falls back to ``text/html``
    with tags stripped via regex.

    Args:
        payload: The ``payload`` dict of a Gmail API message resource.

    Returns:
        The decoded text body.  Returns an empty string if no text content
        could be extracted.
    """
    text_plain = ""
    text_html = ""
    for part in _walk_parts(payload):
        mime_type = part.get("mimeType", "")
        data = (part.get("body") or {}).get("data")
        if not data:
            continue
        if mime_type == "text/plain" and not text_plain:
            text_plain = _decode_part_data(data)
        elif mime_type == "text/html" and not text_html:
            text_html = _decode_part_data(data)

    if text_plain:
        return text_plain
    if text_html:
        return _TAG_RE.sub("", text_html)
    return ""


def extract_latest_reply(full_body: str) -> str:
    """Extract only the latest reply text from an email thread body.

    Uses ``mail-parser-reply`` to strip quoted content, signature blocks,
    and forwarded message headers, returning only the new content from the
    most recent reply.

    If the parser returns an empty string (e.g. the entire message was
    detected as quoted content), the original ``full_body`` is returned
    as a fallback.

    Args:
        full_body: The full text body of the email (may contain quoted
            replies, signatures, etc.).

    Returns:
        The extracted latest reply text, or the original body if
        extraction yields nothing.
    """
    if not full_body.strip():
        return full_body
    parsed: str = EmailReplyParser(languages=["en"]).parse_reply(text=full_body)
    if not parsed or not parsed.strip():
        return full_body
    return parsed
