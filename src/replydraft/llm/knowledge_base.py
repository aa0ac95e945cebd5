"""Knowledge base loader and lookup for company reference information.

Loads FAQ-style entries from a YAML file (``knowledge_base/company.yaml`` at
project root by default) and matches them against a topic for injection
into the draft generator's context.

Each YAML entry has the shape::

    - category: Pricing
      question: What are our pricing tiers?
      answer: |
        ...
      keywords: [pricing, cost, plans]
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from replydraft.context.query import STOPWORDS
from replydraft.domain.models import KnowledgeSnippet

logger = structlog.get_logger()

# Resolve from src/replydraft/llm/ up 3 levels to project root, then into knowledge_base/
DEFAULT_KB_PATH = Path(__file__).resolve().parents[3] / "knowledge_base" / "company.yaml"
DEFAULT_MAX_SNIPPETS = 5


class KnowledgeEntry(BaseModel):
    """One question/answer pair in the knowledge base."""

    model_config = ConfigDict(frozen=True)

    category: str
    question: str
    answer: str
    keywords: tuple[str, ...] = ()

    def matches(self, term: str) -> bool:
        """Return True if ``term`` appears in any field or contains a keyword."""
        if not term:
            return False
        if term in self.category.lower() or term in self.question.lower() or term in self.answer.lower():
            return True
        return any(term in kw.lower() or kw.lower() in term for kw in self.keywords)


def load_knowledge_base(path: Path = DEFAULT_KB_PATH) -> list[KnowledgeEntry]:
    """Load knowledge base entries from a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        The parsed entries, in file order.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the file is not a list of valid entries.
    """
    if not path.exists():
        msg = f"Knowledge base file not found: {path}"
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or []
    if not isinstance(raw, list):
        msg = f"Knowledge base {path} must contain a list of entries"
        raise ValueError(msg)

    try:
        return [KnowledgeEntry.model_validate(item) for item in raw]
    except ValidationError as exc:
        msg = f"Invalid knowledge base entry in {path}: {exc}"
        raise ValueError(msg) from exc


class KnowledgeBase:
    """In-memory ``KnowledgeSource`` over a list of entries.

    Args:
        entries: The loaded knowledge base entries.
        max_snippets: Upper bound on snippets returned per lookup.
    """

    def __init__(self, entries: list[KnowledgeEntry], max_snippets: int = DEFAULT_MAX_SNIPPETS) -> None:
        self._entries = list(entries)
        self._max_snippets = max_snippets

    @classmethod
    def from_file(cls, path: Path = DEFAULT_KB_PATH) -> KnowledgeBase:
        entries = load_knowledge_base(path)
        logger.info("Knowledge base loaded", path=str(path), entries=len(entries))
        return cls(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def fetch_reference_knowledge(self, topic: str) -> list[KnowledgeSnippet]:
        """Return snippets for entries matching ``topic``.

        The whole topic is tried first; if nothing matches, each non-stopword
        word of the topic is tried in turn.
        """
        term = (topic or "").lower().strip()
        if not term:
            return []

        matched = [e for e in self._entries if e.matches(term)]
        if not matched:
            words = [w for w in term.split() if len(w) >= 3 and w not in STOPWORDS]
            matched = [e for e in self._entries if any(e.matches(w) for w in words)]

        return [
            KnowledgeSnippet(topic=topic, category=e.category, title=e.question, text=e.answer.strip())
            for e in matched[: self._max_snippets]
        ]
