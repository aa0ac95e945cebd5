"""Draft confirmation: lifecycle state machine, previews, and the prepare/confirm protocol."""

from replydraft.confirmation.machine import DraftLifecycle
from replydraft.confirmation.preview import format_preview, summarize_context
from replydraft.confirmation.protocol import ConfirmationProtocol
from replydraft.confirmation.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    DraftEvent,
)

__all__ = [
    "ConfirmationProtocol",
    "DraftEvent",
    "DraftLifecycle",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "format_preview",
    "summarize_context",
]
