"""Multi-source context gathering for a reply draft.

The ``ContextOrchestrator`` resolves the target thread and, concurrently,
fetches correspondence history and reference knowledge.  Thread resolution
is essential: if it fails, the gather is aborted and in-flight lookups are
cancelled.  History and knowledge are best-effort: a failure or an empty
result becomes a ``PartialWarning`` and the gather carries on.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from replydraft.context.query import (
    build_search_query,
    derive_topic,
    extract_addresses,
    select_candidate,
)
from replydraft.context.sources import HistorySource, KnowledgeSource, ThreadSource
from replydraft.domain.errors import FatalGatherError, PartialSourceError, ThreadNotFoundError
from replydraft.domain.models import (
    CorrespondenceSummary,
    GatheredContext,
    KnowledgeSnippet,
    PartialWarning,
    ThreadContext,
)
from replydraft.domain.types import WarningReason, WarningSource

logger = structlog.get_logger()

HistoryOutcome = tuple[CorrespondenceSummary, list[PartialWarning]]
KnowledgeOutcome = tuple[list[KnowledgeSnippet], list[PartialWarning]]


def _as_partial(source: WarningSource, exc: Exception) -> PartialSourceError:
    if isinstance(exc, PartialSourceError):
        return exc
    return PartialSourceError(source, str(exc) or type(exc).__name__)


async def _cancel_pending(tasks: list[asyncio.Task[Any]]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


class ContextOrchestrator:
    """Gather everything the draft generator needs for one prepare cycle.

    Collaborators are synchronous; each call runs in a worker thread via
    ``asyncio.to_thread``.  The orchestrator has no side effects beyond
    those read-only calls.

    Args:
        threads: Resolves and fetches the thread being replied to.
        history: Summarises past correspondence with the counterparty.
        knowledge: Retrieves reference snippets for the request topic.
    """

    def __init__(
        self,
        threads: ThreadSource,
        history: HistorySource,
        knowledge: KnowledgeSource,
    ) -> None:
        self._threads = threads
        self._history = history
        self._knowledge = knowledge

    async def gather_context(
        self,
        user_instructions: str,
        thread_hint: str | None = None,
        talking_points: list[str] | None = None,
    ) -> GatheredContext:
        """Resolve the thread and collect history and knowledge around it.

        Args:
            user_instructions: What the user wants the reply to do.
            thread_hint: A thread ID to reply to, skipping the search.
            talking_points: Points the reply must cover.

        Returns:
            The merged context with any non-fatal warnings attached.

        Raises:
            FatalGatherError: If the target thread cannot be resolved
                (``ThreadNotFoundError`` / ``AmbiguousTargetError``).
        """
        topic = derive_topic(user_instructions, talking_points)
        knowledge_task = asyncio.create_task(self._fetch_knowledge(topic))
        pending: list[asyncio.Task[Any]] = [knowledge_task]

        history_task: asyncio.Task[HistoryOutcome] | None = None
        addresses = extract_addresses(user_instructions)
        if addresses:
            history_task = asyncio.create_task(self._fetch_history(addresses[0]))
            pending.append(history_task)

        try:
            thread = await self._resolve_thread(user_instructions, thread_hint)
        except BaseException:
            await _cancel_pending(pending)
            raise

        if history_task is None and thread.primary_recipient:
            history_task = asyncio.create_task(self._fetch_history(thread.primary_recipient))

        if history_task is not None:
            history, history_warnings = await history_task
        else:
            history = CorrespondenceSummary()
            history_warnings = [
                PartialWarning(
                    source=WarningSource.HISTORY,
                    reason=WarningReason.EMPTY,
                    detail="No counterparty address to look up",
                )
            ]
        snippets, knowledge_warnings = await knowledge_task

        gathered = GatheredContext(
            thread=thread,
            history=history,
            snippets=tuple(snippets),
            warnings=(*history_warnings, *knowledge_warnings),
        )
        logger.info(
            "context_gathered",
            thread_id=thread.thread_id,
            messages=len(thread.messages),
            history_messages=history.message_count,
            snippets=len(snippets),
            warnings=[f"{w.source}:{w.reason}" for w in gathered.warnings],
        )
        return gathered

    async def _resolve_thread(self, instructions: str, thread_hint: str | None) -> ThreadContext:
        try:
            if thread_hint:
                return await asyncio.to_thread(self._threads.fetch_thread, thread_hint)

            query = build_search_query(instructions)
            if not query:
                raise ThreadNotFoundError(instructions)
            candidates = await asyncio.to_thread(self._threads.search_threads, query)
            chosen = select_candidate(candidates, instructions, query)
            logger.debug("thread_resolved", query=query, thread_id=chosen.thread_id)
            return await asyncio.to_thread(self._threads.fetch_thread, chosen.thread_id)
        except FatalGatherError:
            raise
        except Exception as exc:
            logger.error("thread_lookup_failed", thread_hint=thread_hint, exc_info=True)
            raise FatalGatherError(f"Thread lookup failed: {exc}") from exc

    async def _fetch_history(self, address: str) -> HistoryOutcome:
        try:
            summary = await asyncio.to_thread(self._history.fetch_correspondence_history, address)
        except Exception as exc:
            error = _as_partial(WarningSource.HISTORY, exc)
            logger.warning("history_lookup_failed", address=address, error=str(error), exc_info=True)
            return CorrespondenceSummary(address=address), [
                PartialWarning(source=WarningSource.HISTORY, reason=WarningReason.FAILED, detail=str(error))
            ]
        if summary.is_empty:
            return summary, [
                PartialWarning(
                    source=WarningSource.HISTORY,
                    reason=WarningReason.EMPTY,
                    detail=f"No prior correspondence with {address}",
                )
            ]
        return summary, []

    async def _fetch_knowledge(self, topic: str) -> KnowledgeOutcome:
        if not topic:
            return [], [
                PartialWarning(
                    source=WarningSource.KNOWLEDGE,
                    reason=WarningReason.EMPTY,
                    detail="No topic to look up",
                )
            ]
        try:
            snippets = await asyncio.to_thread(self._knowledge.fetch_reference_knowledge, topic)
        except Exception as exc:
            error = _as_partial(WarningSource.KNOWLEDGE, exc)
            logger.warning("knowledge_lookup_failed", topic=topic, error=str(error), exc_info=True)
            return [], [
                PartialWarning(source=WarningSource.KNOWLEDGE, reason=WarningReason.FAILED, detail=str(error))
            ]
        if not snippets:
            return [], [
                PartialWarning(
                    source=WarningSource.KNOWLEDGE,
                    reason=WarningReason.EMPTY,
                    detail=f"No reference knowledge for '{topic}'",
                )
            ]
        return list(snippets), []


def compile_context(gathered: GatheredContext, talking_points: list[str] | None = None) -> str:
    """Render gathered context as the text handed to the draft generator."""
    thread = gathered.thread
    sections: list[str] = [
        f"THREAD SUBJECT: {thread.subject or '(no subject)'}",
        f"PARTICIPANTS: {', '.join(thread.participants) or '(unknown)'}",
    ]

    transcript: list[str] = []
    for message in thread.messages:
        direction = "INBOUND" if message.inbound else "OUTBOUND"
        transcript.append(
            f"[{message.sent_at}] {direction} {message.sender} -> {', '.join(message.recipients)}\n"
            f"{message.summary}"
        )
    sections.append("CONVERSATION (oldest first):\n" + ("\n\n".join(transcript) or "(empty)"))

    if gathered.history.is_empty:
        sections.append("CORRESPONDENCE HISTORY:\nNo prior correspondence on record.")
    else:
        sections.append(f"CORRESPONDENCE HISTORY:\n{gathered.history.text}")

    if gathered.snippets:
        lines = [
            f"{index}. {snippet.category.upper()}: {snippet.title}\n{snippet.text}"
            for index, snippet in enumerate(gathered.snippets, start=1)
        ]
        sections.append("REFERENCE KNOWLEDGE:\n" + "\n\n".join(lines))
    else:
        sections.append("REFERENCE KNOWLEDGE:\nNone found.")

    points = [p.strip() for p in talking_points or [] if p.strip()]
    if points:
        sections.append("TALKING POINTS:\n" + "\n".join(f"- {p}" for p in points))

    return "\n\n".join(sections)
