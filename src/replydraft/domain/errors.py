"""Domain-specific exception classes for the reply draft workflow."""

from __future__ import annotations

from typing import TYPE_CHECKING

from replydraft.domain.types import DraftState, StaleReason, WarningSource

if TYPE_CHECKING:
    from replydraft.domain.models import ThreadCandidate


class ReplyDraftError(Exception):
    """Base class for all domain errors in the reply draft workflow."""


class FatalGatherError(ReplyDraftError):
    """Raised when the target thread cannot be resolved.

    Aborts the prepare cycle before the draft generator is invoked; nothing
    is staged.
    """


class ThreadNotFoundError(FatalGatherError):
    """Raised when no thread matches the thread hint or search query.

    Attributes:
        query: The thread ID or search query that produced no match.
    """

    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"No email thread found for '{query}'")


class AmbiguousTargetError(FatalGatherError):
    """Raised when several threads are equally plausible reply targets.

    Attributes:
        query: The search query that was run.
        candidates: The tied candidates, so the caller can ask the user to pick.
    """

    def __init__(self, query: str, candidates: list[ThreadCandidate]) -> None:
        self.query = query
        self.candidates = candidates
        subjects = ", ".join(f"'{c.subject}'" for c in candidates)
        super().__init__(
            f"{len(candidates)} threads match '{query}' equally well: {subjects}. "
            "Provide a thread ID or more specific instructions."
        )


class PartialSourceError(ReplyDraftError):
    """Raised when a non-essential context source (history, knowledge) fails.

    The orchestrator converts this into a warning and continues.

    Attributes:
        source: The context source that failed.
    """

    def __init__(self, source: WarningSource, message: str) -> None:
        self.source = source
        super().__init__(f"{source} lookup failed: {message}")


class GenerationError(ReplyDraftError):
    """Raised when the draft generation service fails. Fatal to prepare."""


class StaleTokenError(ReplyDraftError):
    """Raised when a confirmation token does not resolve to a staged draft.

    Attributes:
        token: The token that missed.
        reason: Whether the draft expired or never existed / was already finalised.
    """

    def __init__(self, token: str, reason: StaleReason) -> None:
        self.token = token
        self.reason = reason
        if reason == StaleReason.EXPIRED:
            detail = "has expired"
        else:
            detail = "was not found or has already been used"
        super().__init__(
            f"Draft '{token}' {detail}. Prepare a new draft to continue."
        )


class DownstreamCreationError(ReplyDraftError):
    """Raised when mail-draft creation fails after a successful confirm match.

    Attributes:
        token: The confirmation token being finalised.
        attempts: How many creation attempts have been made for this draft.
        retryable: Whether the draft was restored for another attempt.
    """

    def __init__(self, token: str, attempts: int, retryable: bool, message: str) -> None:
        self.token = token
        self.attempts = attempts
        self.retryable = retryable
        super().__init__(message)


class InvalidTransitionError(ReplyDraftError):
    """Raised when an invalid draft lifecycle transition is attempted.

    Attributes:
        current_state: The state the lifecycle was in when the transition was attempted.
        event: The event that was rejected.
    """

    def __init__(self, current_state: DraftState, event: str) -> None:
        self.current_state = current_state
        self.event = event
        super().__init__(
            f"Cannot apply event '{event}' in state '{current_state}'"
        )
