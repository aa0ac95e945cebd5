"""Draft staging: token-addressed, time-bounded store and its sweeper."""

from replydraft.staging.store import (
    DEFAULT_TTL,
    DraftStore,
    InMemoryDraftStore,
    generate_token,
)
from replydraft.staging.sweeper import DraftSweeper

__all__ = [
    "DEFAULT_TTL",
    "DraftStore",
    "DraftSweeper",
    "InMemoryDraftStore",
    "generate_token",
]
