"""Domain enumerations for the reply draft workflow."""

from enum import StrEnum


class DraftState(StrEnum):
    """States in the lifecycle of a staged reply draft."""

    NONE = "none"
    STAGED = "staged"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ParseConfidence(StrEnum):
    """How much of a parsed draft came from recognised structure vs fallbacks."""

    HIGH = "high"
    LOW = "low"


class WarningSource(StrEnum):
    """Which sub-operation produced a non-fatal warning."""

    HISTORY = "history"
    KNOWLEDGE = "knowledge"
    PARSER = "parser"


class WarningReason(StrEnum):
    """Why a sub-operation degraded its output."""

    EMPTY = "empty"
    FAILED = "failed"
    DEGRADED = "degraded"


class StaleReason(StrEnum):
    """Why a confirmation token no longer resolves to a staged draft."""

    EXPIRED = "expired"
    NOT_FOUND = "not_found"


class ConfirmErrorCode(StrEnum):
    """Distinguishable failure outcomes of a confirm call."""

    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    MAIL_CREATION_FAILED = "mail_creation_failed"
