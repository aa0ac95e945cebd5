"""Search-query and topic derivation from free-form user instructions.

Also ranks thread search hits so that exactly one target thread is
chosen, or the ambiguity is reported back to the caller.
"""

from __future__ import annotations

import re

from replydraft.domain.errors import AmbiguousTargetError, ThreadNotFoundError
from replydraft.domain.models import ThreadCandidate

MAX_KEYWORDS = 6
ADDRESS_WEIGHT = 3
KEYWORD_WEIGHT = 1

_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_WORD_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9'-]*")
_TOPIC_RE = re.compile(r"\b(?:about|regarding|concerning)\b[:\s]+([^.?!\n]+)", re.IGNORECASE)

STOPWORDS = frozenset(
    {
        "a", "about", "all", "an", "and", "any", "are", "as", "at", "be", "back",
        "but", "by", "can", "could", "do", "draft", "email", "for", "from", "get",
        "have", "he", "her", "him", "his", "i", "if", "in", "is", "it", "its",
        "let", "me", "mail", "message", "my", "need", "of", "on", "or", "our",
        "please", "re", "regarding", "concerning", "reply", "respond", "say",
        "she", "so", "tell", "that", "the", "their", "them", "they", "this",
        "thread", "to", "up", "us", "want", "was", "we", "what", "with",
        "write", "you", "your",
    }
)


def extract_addresses(text: str) -> list[str]:
    """Return the distinct e-mail addresses in ``text``, lower-cased, in order."""
    seen: list[str] = []
    for match in _EMAIL_RE.findall(text or ""):
        addr = match.lower().rstrip(".")
        if addr not in seen:
            seen.append(addr)
    return seen


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Return up to ``limit`` distinct non-stopword keywords from ``text``."""
    without_addresses = _EMAIL_RE.sub(" ", text or "")
    keywords: list[str] = []
    for word in _WORD_RE.findall(without_addresses):
        lowered = word.lower().split("'")[0].strip("-")
        if len(lowered) < 3 or lowered in STOPWORDS or lowered in keywords:
            continue
        keywords.append(lowered)
        if len(keywords) >= limit:
            break
    return keywords


def build_search_query(instructions: str) -> str:
    """Derive a Gmail search query from user instructions.

    Addresses become ``from:<addr> OR to:<addr>`` terms; without any
    address, the first few keywords are used.  Returns an empty string
    when nothing searchable remains.
    """
    addresses = extract_addresses(instructions)
    if addresses:
        return " OR ".join(f"from:{a} OR to:{a}" for a in addresses)
    return " ".join(extract_keywords(instructions))


def derive_topic(instructions: str, talking_points: list[str] | None = None) -> str:
    """Pick the knowledge-lookup topic for a prepare request.

    The phrase following ``about`` / ``regarding`` / ``concerning`` wins,
    then the talking points, then the instruction keywords.
    """
    match = _TOPIC_RE.search(instructions or "")
    if match:
        phrase = match.group(1).strip()
        if extract_keywords(phrase):
            return phrase
    if talking_points:
        joined = " ".join(p.strip() for p in talking_points if p.strip())
        if joined:
            return joined
    return " ".join(extract_keywords(instructions))


def score_candidate(
    candidate: ThreadCandidate, addresses: list[str], keywords: list[str]
) -> int:
    """Score how well a search hit matches the instructions."""
    participants = {p.lower() for p in candidate.participants}
    haystack = f"{candidate.subject} {candidate.snippet}".lower()
    score = sum(ADDRESS_WEIGHT for addr in addresses if addr in participants)
    score += sum(KEYWORD_WEIGHT for word in keywords if word in haystack)
    return score


def select_candidate(
    candidates: list[ThreadCandidate], instructions: str, query: str
) -> ThreadCandidate:
    """Resolve search hits to exactly one thread.

    Args:
        candidates: Hits returned by the thread source for ``query``.
        instructions: The user's instructions, used for scoring.
        query: The query that was run, for error messages.

    Returns:
        The unique best-scoring candidate.

    Raises:
        ThreadNotFoundError: If there are no candidates.
        AmbiguousTargetError: If two or more candidates share the top score.
    """
    if not candidates:
        raise ThreadNotFoundError(query)
    if len(candidates) == 1:
        return candidates[0]

    addresses = extract_addresses(instructions)
    keywords = extract_keywords(instructions)
    scored = [(score_candidate(c, addresses, keywords), c) for c in candidates]
    best = max(score for score, _ in scored)
    top = [c for score, c in scored if score == best]
    if len(top) > 1:
        raise AmbiguousTargetError(query, top)
    return top[0]
