"""Gmail-backed correspondence history source.

Searches the mailbox for prior messages from or to an address and
condenses the hits into a ``CorrespondenceSummary`` digest.
"""

from __future__ import annotations

from typing import Protocol

import structlog
from googleapiclient.errors import HttpError

from replydraft.domain.errors import PartialSourceError
from replydraft.domain.models import CorrespondenceSummary
from replydraft.domain.types import WarningSource

logger = structlog.get_logger()

DEFAULT_MAX_RESULTS = 10


class MessageSearcher(Protocol):
    def search_messages(self, query: str, max_results: int = ...) -> list[dict[str, str]]: ...


def format_history(address: str, messages: list[dict[str, str]]) -> str:
    """Render message headers and snippets as a compact digest."""
    lines = [f"{len(messages)} previous email(s) with {address}:"]
    for index, message in enumerate(messages, start=1):
        subject = message.get("subject") or "(no subject)"
        lines.append(
            f"{index}. [{message.get('date', '')}] {message.get('from', '')} -> "
            f"{message.get('to', '')}: {subject}"
        )
        snippet = (message.get("snippet") or "").strip()
        if snippet:
            lines.append(f"   {snippet}")
    return "\n".join(lines)


class GmailHistorySource:
    """Summarise past correspondence with an address via Gmail search.

    Args:
        searcher: Anything with ``search_messages`` (normally ``GmailClient``).
        max_results: Maximum number of past messages to include.
    """

    def __init__(self, searcher: MessageSearcher, max_results: int = DEFAULT_MAX_RESULTS) -> None:
        self._searcher = searcher
        self._max_results = max_results

    def fetch_correspondence_history(self, address: str) -> CorrespondenceSummary:
        query = f"from:{address} OR to:{address}"
        try:
            messages = self._searcher.search_messages(query, max_results=self._max_results)
        except HttpError as exc:
            raise PartialSourceError(WarningSource.HISTORY, f"Gmail search failed: {exc}") from exc
        logger.debug("correspondence_history_fetched", address=address, count=len(messages))
        if not messages:
            return CorrespondenceSummary(address=address)
        return CorrespondenceSummary(
            address=address,
            text=format_history(address, messages),
            message_count=len(messages),
        )
