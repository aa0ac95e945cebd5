"""Tests for search-query derivation, topic extraction and candidate selection."""

from __future__ import annotations

import pytest

from replydraft.context.query import (
    build_search_query,
    derive_topic,
    extract_addresses,
    extract_keywords,
    score_candidate,
    select_candidate,
)
from replydraft.domain.errors import AmbiguousTargetError, ThreadNotFoundError
from replydraft.domain.models import ThreadCandidate


class TestExtraction:
    def test_addresses_lowercased_and_distinct(self) -> None:
        text = "Reply to Jane@Client.com and cc jane@client.com, then bob@client.com."
        assert extract_addresses(text) == ["jane@client.com", "bob@client.com"]

    def test_no_addresses(self) -> None:
        assert extract_addresses("reply to the pricing thread") == []

    def test_keywords_skip_stopwords_and_short_words(self) -> None:
        assert extract_keywords("Please reply to the pricing thread about an API") == [
            "pricing",
            "api",
        ]

    def test_keywords_exclude_addresses(self) -> None:
        assert "client" not in extract_keywords("Write to jane@client.com about invoices")

    def test_keyword_limit(self) -> None:
        text = "alpha bravo charlie delta echo foxtrot golf hotel"
        assert extract_keywords(text) == ["alpha", "bravo", "charlie", "delta", "echo", "foxtrot"]


class TestBuildSearchQuery:
    def test_address_query(self) -> None:
        assert build_search_query("Reply to jane@client.com") == (
            "from:jane@client.com OR to:jane@client.com"
        )

    def test_keyword_query(self) -> None:
        assert build_search_query("Reply to the invoice dispute") == "invoice dispute"

    def test_nothing_searchable(self) -> None:
        assert build_search_query("reply to them") == ""


class TestDeriveTopic:
    def test_about_phrase_wins(self) -> None:
        assert derive_topic("Tell Jane about our pricing tiers. Be friendly.") == "our pricing tiers"

    def test_talking_points_used_without_phrase(self) -> None:
        assert derive_topic("Reply to Jane", ["refund policy", "  "]) == "refund policy"

    def test_falls_back_to_keywords(self) -> None:
        assert derive_topic("Reply to the shipping delay") == "shipping delay"

    def test_contraction_is_not_a_topic_marker(self) -> None:
        assert derive_topic("Tell her you're sorry for the outage") == "sorry outage"


def _candidate(thread_id: str, subject: str, participants: tuple[str, ...] = ()) -> ThreadCandidate:
    return ThreadCandidate(thread_id=thread_id, subject=subject, participants=participants)


class TestSelectCandidate:
    def test_no_candidates_raises_not_found(self) -> None:
        with pytest.raises(ThreadNotFoundError):
            select_candidate([], "reply to pricing", "pricing")

    def test_single_candidate_taken_directly(self) -> None:
        only = _candidate("t-1", "Unrelated")
        assert select_candidate([only], "reply to pricing", "pricing") is only

    def test_best_score_wins(self) -> None:
        candidates = [
            _candidate("t-1", "Shipping update"),
            _candidate("t-2", "Pricing question"),
        ]
        assert select_candidate(candidates, "reply about pricing", "pricing").thread_id == "t-2"

    def test_address_match_outweighs_keyword(self) -> None:
        candidates = [
            _candidate("t-1", "Pricing question", ("bob@client.com",)),
            _candidate("t-2", "Lunch", ("jane@client.com",)),
        ]
        chosen = select_candidate(candidates, "reply to jane@client.com about pricing", "q")
        assert chosen.thread_id == "t-2"

    def test_tie_is_ambiguous(self) -> None:
        candidates = [
            _candidate("t-1", "Pricing question"),
            _candidate("t-2", "Pricing follow-up"),
            _candidate("t-3", "Shipping"),
        ]
        with pytest.raises(AmbiguousTargetError) as exc_info:
            select_candidate(candidates, "reply about pricing", "pricing")
        assert [c.thread_id for c in exc_info.value.candidates] == ["t-1", "t-2"]

    def test_score_candidate_counts_snippet(self) -> None:
        candidate = ThreadCandidate(thread_id="t-1", subject="Hello", snippet="about the invoice")
        assert score_candidate(candidate, [], ["invoice", "refund"]) == 1
