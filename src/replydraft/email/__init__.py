"""Email domain: Gmail API client, threading, parsing, and models."""

from replydraft.email.client import GmailClient
from replydraft.email.models import OutboundDraft
from replydraft.email.parser import extract_latest_reply, extract_payload_text
from replydraft.email.threading import (
    build_reply_headers,
    normalize_reply_subject,
    parse_address,
    thread_context_from_api,
)

__all__ = [
    "GmailClient",
    "OutboundDraft",
    "build_reply_headers",
    "extract_latest_reply",
    "extract_payload_text",
    "normalize_reply_subject",
    "parse_address",
    "thread_context_from_api",
]
