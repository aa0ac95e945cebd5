"""Pydantic v2 models for domain data structures in the reply draft workflow."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from replydraft.domain.types import (
    ConfirmErrorCode,
    ParseConfidence,
    WarningReason,
    WarningSource,
)


class ThreadMessage(BaseModel):
    """A single message inside an email thread, reduced to what drafting needs."""

    model_config = ConfigDict(frozen=True)

    message_id: str = ""  # RFC 2822 Message-ID header
    sender: str = ""
    recipients: tuple[str, ...] = ()
    sent_at: str = ""
    summary: str = ""
    inbound: bool = True


class ThreadContext(BaseModel):
    """Immutable snapshot of one email conversation.

    Produced once per prepare cycle and never mutated afterwards.
    ``messages`` are ordered oldest first.
    """

    model_config = ConfigDict(frozen=True)

    thread_id: str
    subject: str = ""
    messages: tuple[ThreadMessage, ...] = ()
    participants: tuple[str, ...] = ()
    latest_message_id: str | None = None
    references: tuple[str, ...] = ()
    primary_recipient: str | None = None

    def latest_inbound(self) -> ThreadMessage | None:
        """Return the most recent message not sent by the assistant's mailbox."""
        for message in reversed(self.messages):
            if message.inbound:
                return message
        return None


class ThreadCandidate(BaseModel):
    """A thread search hit considered during target resolution."""

    model_config = ConfigDict(frozen=True)

    thread_id: str
    subject: str = ""
    participants: tuple[str, ...] = ()
    snippet: str = ""


class CorrespondenceSummary(BaseModel):
    """Digest of prior exchanges with one counterparty.

    An empty ``text`` means "no history", not an error.
    """

    model_config = ConfigDict(frozen=True)

    address: str = ""
    text: str = ""
    message_count: int = 0

    @property
    def is_empty(self) -> bool:
        """Return True when there is no usable history."""
        return not self.text.strip()


class KnowledgeSnippet(BaseModel):
    """A short reference passage retrieved for a topic."""

    model_config = ConfigDict(frozen=True)

    topic: str
    category: str
    title: str
    text: str


class ThreadingHeaders(BaseModel):
    """RFC 2822 headers that attach a reply to its thread."""

    model_config = ConfigDict(frozen=True)

    in_reply_to: str | None = None
    references: str | None = None  # Space-separated Message-IDs


class PartialWarning(BaseModel):
    """A non-fatal degradation attached to an otherwise successful result."""

    model_config = ConfigDict(frozen=True)

    source: WarningSource
    reason: WarningReason
    detail: str = ""


class GatheredContext(BaseModel):
    """Merged output of the context orchestrator."""

    model_config = ConfigDict(frozen=True)

    thread: ThreadContext
    history: CorrespondenceSummary = Field(default_factory=CorrespondenceSummary)
    snippets: tuple[KnowledgeSnippet, ...] = ()
    warnings: tuple[PartialWarning, ...] = ()


class ParsedDraft(BaseModel):
    """Structured fields recovered from free-form generator output."""

    model_config = ConfigDict(frozen=True)

    to: tuple[str, ...] = ()
    subject: str
    body: str
    headers: ThreadingHeaders = Field(default_factory=ThreadingHeaders)
    confidence: ParseConfidence = ParseConfidence.HIGH
    fallbacks: tuple[str, ...] = ()


class DraftContent(BaseModel):
    """The caller-supplied part of a staged draft."""

    model_config = ConfigDict(frozen=True)

    thread_id: str
    to: tuple[str, ...]
    subject: str
    body: str
    headers: ThreadingHeaders = Field(default_factory=ThreadingHeaders)
    context_summary: str = ""


class DraftRecord(DraftContent):
    """A draft held in the staging store under its confirmation token.

    Reachable only via ``token``.  Records are frozen: a re-stage for a
    mail-creation retry stores a copy rather than mutating in place.
    """

    token: str
    created_at: datetime
    expires_at: datetime
    creation_attempts: int = 0

    @field_validator("token")
    @classmethod
    def token_must_not_be_empty(cls, v: str) -> str:
        """Ensure the token is a non-empty string."""
        if not v:
            raise ValueError("token must not be empty")
        return v

    def is_expired(self, now: datetime) -> bool:
        """Return True once ``now`` has reached the expiry timestamp."""
        return now >= self.expires_at


class PrepareResult(BaseModel):
    """Outcome of a successful prepare call."""

    token: str
    preview_text: str
    draft: DraftRecord
    partial_warnings: list[PartialWarning] = Field(default_factory=list)
    parse_confidence: ParseConfidence = ParseConfidence.HIGH


class ConfirmResult(BaseModel):
    """Outcome of a confirm call; every terminal outcome is distinguishable."""

    success: bool
    token: str
    external_draft_id: str | None = None
    error: ConfirmErrorCode | None = None
    retryable: bool = False
    message: str = ""
