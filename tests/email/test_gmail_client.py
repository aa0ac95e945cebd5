"""Tests for the GmailClient Gmail API wrapper."""

from __future__ import annotations

import base64
import email
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from replydraft.domain.errors import ThreadNotFoundError
from replydraft.domain.models import ThreadingHeaders
from replydraft.email.client import GmailClient, _is_transient
from replydraft.email.models import OutboundDraft

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FROM_EMAIL = "me@company.com"
TO_EMAIL = "jane@client.com"
THREAD_ID = "thread_xyz789"
MESSAGE_ID_HEADER = "<msg789@mail.client.com>"


def _make_client(service: MagicMock | None = None) -> GmailClient:
    return GmailClient(service=service or MagicMock(), from_email=FROM_EMAIL)


def _http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b"error")


def _headers(**values: str) -> list[dict[str, str]]:
    return [{"name": name.replace("_", "-").title(), "value": value} for name, value in values.items()]


def _decode_raw(service: MagicMock) -> email.message.Message:
    call = service.users().drafts().create.call_args
    raw = call.kwargs["body"]["message"]["raw"]
    return email.message_from_bytes(base64.urlsafe_b64decode(raw))


# ---------------------------------------------------------------------------
# Transient error classification
# ---------------------------------------------------------------------------


class TestIsTransient:
    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_retryable_statuses(self, status: int) -> None:
        assert _is_transient(_http_error(status))

    @pytest.mark.parametrize("status", [400, 403, 404])
    def test_client_errors_not_retried(self, status: int) -> None:
        assert not _is_transient(_http_error(status))

    def test_transport_errors_are_retried(self) -> None:
        assert _is_transient(ConnectionError("reset"))


# ---------------------------------------------------------------------------
# search_threads
# ---------------------------------------------------------------------------


class TestSearchThreads:
    """Tests for GmailClient.search_threads."""

    def test_returns_candidates_with_metadata(self) -> None:
        service = MagicMock()
        service.users().threads().list().execute.return_value = {
            "threads": [{"id": "t-1", "snippet": "What does Growth cost?"}]
        }
        service.users().threads().get().execute.return_value = {
            "messages": [
                {
                    "payload": {
                        "headers": _headers(
                            subject="Pricing question",
                            **{"from": f"Jane <{TO_EMAIL}>", "to": FROM_EMAIL},
                        )
                    }
                }
            ]
        }

        candidates = _make_client(service).search_threads("pricing")

        assert len(candidates) == 1
        assert candidates[0].thread_id == "t-1"
        assert candidates[0].subject == "Pricing question"
        assert candidates[0].participants == (TO_EMAIL,)
        assert candidates[0].snippet == "What does Growth cost?"

    def test_passes_query_and_limit(self) -> None:
        service = MagicMock()
        service.users().threads().list().execute.return_value = {}

        _make_client(service).search_threads("from:jane@client.com", max_results=5)

        service.users().threads().list.assert_called_with(
            userId="me", q="from:jane@client.com", maxResults=5
        )

    def test_no_hits_returns_empty_list(self) -> None:
        service = MagicMock()
        service.users().threads().list().execute.return_value = {}
        assert _make_client(service).search_threads("nothing") == []


# ---------------------------------------------------------------------------
# fetch_thread
# ---------------------------------------------------------------------------


class TestFetchThread:
    """Tests for GmailClient.fetch_thread."""

    def test_returns_thread_context(self) -> None:
        service = MagicMock()
        service.users().threads().get().execute.return_value = {
            "id": THREAD_ID,
            "messages": [
                {
                    "snippet": "Hello",
                    "payload": {
                        "headers": _headers(
                            subject="Hello",
                            message_id=MESSAGE_ID_HEADER,
                            **{"from": TO_EMAIL, "to": FROM_EMAIL},
                        )
                    },
                }
            ],
        }

        ctx = _make_client(service).fetch_thread(THREAD_ID)

        assert ctx.thread_id == THREAD_ID
        assert ctx.subject == "Hello"
        assert ctx.latest_message_id == MESSAGE_ID_HEADER
        assert ctx.primary_recipient == TO_EMAIL
        service.users().threads().get.assert_called_with(userId="me", id=THREAD_ID, format="full")

    def test_404_raises_thread_not_found(self) -> None:
        service = MagicMock()
        service.users().threads().get().execute.side_effect = _http_error(404)

        with pytest.raises(ThreadNotFoundError):
            _make_client(service).fetch_thread("missing")

    def test_empty_thread_raises_thread_not_found(self) -> None:
        service = MagicMock()
        service.users().threads().get().execute.return_value = {"id": "t-1", "messages": []}

        with pytest.raises(ThreadNotFoundError):
            _make_client(service).fetch_thread("t-1")

    def test_other_http_errors_propagate(self) -> None:
        service = MagicMock()
        service.users().threads().get().execute.side_effect = _http_error(403)

        with pytest.raises(HttpError):
            _make_client(service).fetch_thread("t-1")


# ---------------------------------------------------------------------------
# search_messages
# ---------------------------------------------------------------------------


class TestSearchMessages:
    def test_returns_headers_and_snippets(self) -> None:
        service = MagicMock()
        service.users().messages().list().execute.return_value = {"messages": [{"id": "m-1"}]}
        service.users().messages().get().execute.return_value = {
            "snippet": "Thanks for the demo",
            "payload": {
                "headers": _headers(
                    subject="Demo",
                    date="Mon, 10 Feb 2025 09:00:00 +0000",
                    **{"from": TO_EMAIL, "to": FROM_EMAIL},
                )
            },
        }

        results = _make_client(service).search_messages(f"from:{TO_EMAIL} OR to:{TO_EMAIL}")

        assert results == [
            {
                "subject": "Demo",
                "from": TO_EMAIL,
                "to": FROM_EMAIL,
                "date": "Mon, 10 Feb 2025 09:00:00 +0000",
                "snippet": "Thanks for the demo",
            }
        ]

    def test_client_error_is_not_retried(self) -> None:
        service = MagicMock()
        service.users().messages().list().execute.side_effect = _http_error(400)

        with pytest.raises(HttpError):
            _make_client(service).search_messages("bad query")
        assert service.users().messages().list().execute.call_count == 1


# ---------------------------------------------------------------------------
# create_draft / create_mail_draft
# ---------------------------------------------------------------------------


class TestCreateDraft:
    """Tests for GmailClient.create_draft."""

    def test_threaded_draft_has_reply_headers(self) -> None:
        service = MagicMock()
        service.users().drafts().create().execute.return_value = {"id": "draft-1"}
        outbound = OutboundDraft(
            to=(TO_EMAIL,),
            subject="Re: Hello",
            body="Thanks Jane",
            thread_id=THREAD_ID,
            in_reply_to=MESSAGE_ID_HEADER,
            references=f"<first@client.com> {MESSAGE_ID_HEADER}",
        )

        draft_id = _make_client(service).create_draft(outbound)

        assert draft_id == "draft-1"
        call = service.users().drafts().create.call_args
        assert call.kwargs["userId"] == "me"
        assert call.kwargs["body"]["message"]["threadId"] == THREAD_ID
        message = _decode_raw(service)
        assert message["To"] == TO_EMAIL
        assert message["From"] == FROM_EMAIL
        assert message["Subject"] == "Re: Hello"
        assert message["In-Reply-To"] == MESSAGE_ID_HEADER
        assert message["References"] == f"<first@client.com> {MESSAGE_ID_HEADER}"
        assert "Thanks Jane" in message.get_payload(decode=True).decode()

    def test_unthreaded_draft_omits_thread_fields(self) -> None:
        service = MagicMock()
        service.users().drafts().create().execute.return_value = {"id": "draft-2"}

        _make_client(service).create_draft(OutboundDraft(to=(TO_EMAIL,), subject="Hi", body="Hello"))

        call = service.users().drafts().create.call_args
        assert "threadId" not in call.kwargs["body"]["message"]
        message = _decode_raw(service)
        assert message["In-Reply-To"] is None
        assert message["References"] is None

    def test_never_sends(self) -> None:
        service = MagicMock()
        service.users().drafts().create().execute.return_value = {"id": "draft-3"}

        _make_client(service).create_draft(OutboundDraft(to=(TO_EMAIL,), subject="Hi", body="Hello"))

        service.users().messages().send.assert_not_called()

    def test_timeout_is_not_retried(self) -> None:
        """A timeout may follow a stored draft, so exactly one create is attempted."""
        service = MagicMock()
        execute = service.users().drafts().create().execute
        execute.side_effect = [TimeoutError("read timed out"), {"id": "draft-dup"}]

        with pytest.raises(TimeoutError):
            _make_client(service).create_mail_draft(
                (TO_EMAIL,), "Re: Hello", "Body", ThreadingHeaders(), THREAD_ID
            )

        assert execute.call_count == 1

    def test_server_error_is_not_retried(self) -> None:
        service = MagicMock()
        execute = service.users().drafts().create().execute
        execute.side_effect = _http_error(503)

        with pytest.raises(HttpError):
            _make_client(service).create_draft(
                OutboundDraft(to=(TO_EMAIL,), subject="Hi", body="Hello")
            )

        assert execute.call_count == 1

    def test_outbound_requires_recipient(self) -> None:
        with pytest.raises(ValueError, match="at least one recipient"):
            OutboundDraft(to=(), subject="Hi", body="Hello")

    def test_create_mail_draft_maps_headers(self) -> None:
        service = MagicMock()
        service.users().drafts().create().execute.return_value = {"id": "draft-4"}

        draft_id = _make_client(service).create_mail_draft(
            (TO_EMAIL,),
            "Re: Hello",
            "Body",
            ThreadingHeaders(in_reply_to=MESSAGE_ID_HEADER, references=MESSAGE_ID_HEADER),
            THREAD_ID,
        )

        assert draft_id == "draft-4"
        message = _decode_raw(service)
        assert message["In-Reply-To"] == MESSAGE_ID_HEADER
