"""Context gathering: collaborator protocols, thread resolution, orchestration."""

from replydraft.context.history import GmailHistorySource
from replydraft.context.orchestrator import ContextOrchestrator, compile_context
from replydraft.context.query import build_search_query, derive_topic, select_candidate
from replydraft.context.sources import (
    DraftGenerator,
    HistorySource,
    KnowledgeSource,
    MailCreator,
    ThreadSource,
)

__all__ = [
    "ContextOrchestrator",
    "DraftGenerator",
    "GmailHistorySource",
    "HistorySource",
    "KnowledgeSource",
    "MailCreator",
    "ThreadSource",
    "build_search_query",
    "compile_context",
    "derive_topic",
    "select_candidate",
]
