"""Collaborator interfaces consumed by the reply workflow.

Each collaborator is a synchronous request/response capability.  The
orchestrator and confirmation protocol call them via ``asyncio.to_thread``
so that a slow connector never blocks the event loop.
"""

from __future__ import annotations

from typing import Protocol

from replydraft.domain.models import (
    CorrespondenceSummary,
    KnowledgeSnippet,
    ThreadCandidate,
    ThreadContext,
    ThreadingHeaders,
)


class ThreadSource(Protocol):
    """Looks up email threads by ID or by search query."""

    def fetch_thread(self, thread_id: str) -> ThreadContext:
        """Return the thread, raising ``ThreadNotFoundError`` if it does not exist."""
        ...

    def search_threads(self, query: str) -> list[ThreadCandidate]: ...


class HistorySource(Protocol):
    """Summarises prior correspondence with one address."""

    def fetch_correspondence_history(self, address: str) -> CorrespondenceSummary: ...


class KnowledgeSource(Protocol):
    """Retrieves reference passages for a topic."""

    def fetch_reference_knowledge(self, topic: str) -> list[KnowledgeSnippet]: ...


class DraftGenerator(Protocol):
    """Turns compiled context and user instructions into draft prose."""

    def generate_draft_text(self, compiled_context: str, instructions: str) -> str: ...


class MailCreator(Protocol):
    """Creates (never sends) a draft in the user's mailbox."""

    def create_mail_draft(
        self,
        recipients: tuple[str, ...],
        subject: str,
        body: str,
        headers: ThreadingHeaders,
        thread_id: str | None = None,
    ) -> str:
        """Create the draft and return its external ID."""
        ...
