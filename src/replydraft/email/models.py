"""Pydantic v2 models for the email domain.

Provides the frozen model describing a reply draft to be created in the
user's mailbox.
"""

from pydantic import BaseModel, ConfigDict, field_validator


class OutboundDraft(BaseModel):
    """A reply draft to be created (never sent) in the user's mailbox.

    When ``thread_id``, ``in_reply_to``, and ``references`` are provided,
    the draft is threaded as a reply.  Otherwise it starts a new
    conversation.
    """

    model_config = ConfigDict(frozen=True)

    to: tuple[str, ...]
    subject: str
    body: str
    thread_id: str | None = None
    in_reply_to: str | None = None  # RFC 2822 Message-ID to reply to
    references: str | None = None  # Space-separated RFC 2822 Message-IDs

    @field_validator("to")
    @classmethod
    def must_have_recipient(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Ensure at least one recipient is provided."""
        if not v:
            raise ValueError("to must contain at least one recipient")
        return v
