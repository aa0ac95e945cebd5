"""Domain types, errors, and models for the reply draft workflow."""

from replydraft.domain.errors import (
    AmbiguousTargetError,
    DownstreamCreationError,
    FatalGatherError,
    GenerationError,
    InvalidTransitionError,
    PartialSourceError,
    ReplyDraftError,
    StaleTokenError,
    ThreadNotFoundError,
)
from replydraft.domain.models import (
    ConfirmResult,
    CorrespondenceSummary,
    DraftContent,
    DraftRecord,
    GatheredContext,
    KnowledgeSnippet,
    ParsedDraft,
    PartialWarning,
    PrepareResult,
    ThreadCandidate,
    ThreadContext,
    ThreadingHeaders,
    ThreadMessage,
)
from replydraft.domain.types import (
    ConfirmErrorCode,
    DraftState,
    ParseConfidence,
    StaleReason,
    WarningReason,
    WarningSource,
)

__all__ = [
    "AmbiguousTargetError",
    "ConfirmErrorCode",
    "ConfirmResult",
    "CorrespondenceSummary",
    "DownstreamCreationError",
    "DraftContent",
    "DraftRecord",
    "DraftState",
    "FatalGatherError",
    "GatheredContext",
    "GenerationError",
    "InvalidTransitionError",
    "KnowledgeSnippet",
    "ParseConfidence",
    "ParsedDraft",
    "PartialSourceError",
    "PartialWarning",
    "PrepareResult",
    "ReplyDraftError",
    "StaleReason",
    "StaleTokenError",
    "ThreadCandidate",
    "ThreadContext",
    "ThreadMessage",
    "ThreadNotFoundError",
    "ThreadingHeaders",
    "WarningReason",
    "WarningSource",
]
