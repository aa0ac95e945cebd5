"""Gmail API client wrapper for thread lookup, history search, and draft creation.

Provides the ``GmailClient`` class that encapsulates all Gmail API
operations needed by the reply workflow: searching threads, fetching a
full thread as a ``ThreadContext``, searching past correspondence, and
creating threaded reply drafts.  It satisfies the ``ThreadSource`` and
``MailCreator`` protocols.
"""

from __future__ import annotations

import base64
from email.message import EmailMessage
from typing import Any

import structlog
from googleapiclient.errors import HttpError

from replydraft.domain.errors import ThreadNotFoundError
from replydraft.domain.models import ThreadCandidate, ThreadContext, ThreadingHeaders
from replydraft.email.models import OutboundDraft
from replydraft.email.threading import header_map, parse_address, parse_address_list, thread_context_from_api
from replydraft.resilience.retry import resilient_api_call

logger = structlog.get_logger()

DEFAULT_SEARCH_RESULTS = 10


def _is_transient(exc: BaseException) -> bool:
    """Return True for errors worth retrying (5xx, 429, transport errors)."""
    if isinstance(exc, HttpError):
        return exc.resp.status >= 500 or exc.resp.status == 429
    return True


class GmailClient:
    """Wrapper around the Gmail API service for reply drafting.

    All methods operate through the provided Gmail API service resource
    (obtained via ``get_gmail_service``).  No real network calls are made
    by this class directly -- the service object handles transport.

    Args:
        service: An authenticated Gmail API v1 service resource.
        from_email: The mailbox address drafts are created for.
    """

    def __init__(self, service: Any, from_email: str) -> None:
        self._service = service
        self._from_email = from_email

    def search_threads(
        self, query: str, max_results: int = DEFAULT_SEARCH_RESULTS
    ) -> list[ThreadCandidate]:
        """Search threads and return lightweight candidates.

        Calls ``users.threads.list`` with the Gmail search ``query``, then
        fetches ``Subject``/``From``/``To`` metadata for each hit.

        Args:
            query: A Gmail search query (e.g. ``from:a@b.com OR to:a@b.com``).
            max_results: Maximum number of threads to consider.

        Returns:
            Candidates in Gmail's result order (newest first).
        """
        response: dict[str, Any] = (
            self._service.users()
            .threads()
            .list(userId="me", q=query, maxResults=max_results)
            .execute()
        )

        candidates: list[ThreadCandidate] = []
        for hit in response.get("threads", []):
            thread: dict[str, Any] = (
                self._service.users()
                .threads()
                .get(
                    userId="me",
                    id=hit["id"],
                    format="metadata",
                    metadataHeaders=["Subject", "From", "To"],
                )
                .execute()
            )
            messages = thread.get("messages", [])
            subject = ""
            participants: list[str] = []
            for message in messages:
                headers = header_map(message.get("payload", {}).get("headers", []))
                subject = subject or headers.get("subject", "")
                for addr in [parse_address(headers.get("from", "")), *parse_address_list(headers.get("to", ""))]:
                    if addr and addr not in participants and addr != self._from_email.lower():
                        participants.append(addr)
            candidates.append(
                ThreadCandidate(
                    thread_id=hit["id"],
                    subject=subject,
                    participants=tuple(participants),
                    snippet=hit.get("snippet") or (messages[-1].get("snippet", "") if messages else ""),
                )
            )
        return candidates

    def fetch_thread(self, thread_id: str) -> ThreadContext:
        """Fetch a full thread and reduce it to a ``ThreadContext``.

        Args:
            thread_id: The Gmail thread ID.

        Returns:
            The thread's immutable context snapshot.

        Raises:
            ThreadNotFoundError: If Gmail reports the thread does not exist.
        """
        try:
            thread: dict[str, Any] = (
                self._service.users()
                .threads()
                .get(userId="me", id=thread_id, format="full")
                .execute()
            )
        except HttpError as exc:
            if exc.resp.status in (400, 404):
                raise ThreadNotFoundError(thread_id) from exc
            raise

        if not thread.get("messages"):
            raise ThreadNotFoundError(thread_id)
        thread.setdefault("id", thread_id)
        return thread_context_from_api(thread, agent_email=self._from_email)

    @resilient_api_call("gmail_messages_list", retry_if=_is_transient)
    def search_messages(
        self, query: str, max_results: int = DEFAULT_SEARCH_RESULTS
    ) -> list[dict[str, str]]:
        """Search messages and return their headers and snippets.

        Args:
            query: A Gmail search query.
            max_results: Maximum number of messages to return.

        Returns:
            One dict per message with ``subject``, ``from``, ``to``,
            ``date`` and ``snippet`` keys, newest first.
        """
        response: dict[str, Any] = (
            self._service.users()
            .messages()
            .list(userId="me", q=query, maxResults=max_results)
            .execute()
        )

        results: list[dict[str, str]] = []
        for hit in response.get("messages", []):
            meta: dict[str, Any] = (
                self._service.users()
                .messages()
                .get(
                    userId="me",
                    id=hit["id"],
                    format="metadata",
                    metadataHeaders=["Subject", "From", "To", "Date"],
                )
                .execute()
            )
            headers = header_map(meta.get("payload", {}).get("headers", []))
            results.append(
                {
                    "subject": headers.get("subject", ""),
                    "from": headers.get("from", ""),
                    "to": headers.get("to", ""),
                    "date": headers.get("date", ""),
                    "snippet": meta.get("snippet", ""),
                }
            )
        return results

    def create_draft(self, outbound: OutboundDraft) -> str:
        """Create a draft via the Gmail API.  Nothing is sent.

        Constructs an RFC 2822 MIME message from the ``OutboundDraft``
        model, base64url-encodes it, and creates it via
        ``users.drafts.create``.  When ``outbound.thread_id`` is set, the
        draft is linked to an existing thread; ``In-Reply-To`` and
        ``References`` headers are added when present.

        Not retried: ``drafts.create`` is not idempotent, and a timeout may
        land after Gmail stored the draft.  Retry policy belongs to the
        confirmation protocol, which keeps the staged draft for another
        explicit confirm.

        Args:
            outbound: The draft to create.

        Returns:
            The Gmail draft ID.
        """
        message = EmailMessage()
        message.set_content(outbound.body)
        message["To"] = ", ".join(outbound.to)
        if self._from_email:
            message["From"] = self._from_email
        message["Subject"] = outbound.subject

        if outbound.in_reply_to:
            message["In-Reply-To"] = outbound.in_reply_to
        if outbound.references:
            message["References"] = outbound.references

        encoded = base64.urlsafe_b64encode(message.as_bytes()).decode()
        draft_message: dict[str, Any] = {"raw": encoded}
        if outbound.thread_id:
            draft_message["threadId"] = outbound.thread_id

        result: dict[str, Any] = (
            self._service.users()
            .drafts()
            .create(userId="me", body={"message": draft_message})
            .execute()
        )
        logger.info("Gmail draft created", draft_id=result.get("id"), thread_id=outbound.thread_id)
        return str(result["id"])

    def create_mail_draft(
        self,
        recipients: tuple[str, ...],
        subject: str,
        body: str,
        headers: ThreadingHeaders,
        thread_id: str | None = None,
    ) -> str:
        """Create a threaded reply draft from confirmed draft fields.

        Returns:
            The Gmail draft ID.
        """
        outbound = OutboundDraft(
            to=recipients,
            subject=subject,
            body=body,
            thread_id=thread_id,
            in_reply_to=headers.in_reply_to,
            references=headers.references,
        )
        return self.create_draft(outbound)
