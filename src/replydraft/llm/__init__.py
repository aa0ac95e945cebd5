"""LLM integration package for the reply draft assistant.

Provides Anthropic client configuration, prompt templates, the draft
generator, the YAML knowledge base, and the generator output parser.
"""

from replydraft.llm.client import COMPOSE_MODEL, get_anthropic_client
from replydraft.llm.composer import AnthropicDraftGenerator, compose_reply
from replydraft.llm.knowledge_base import KnowledgeBase, KnowledgeEntry, load_knowledge_base
from replydraft.llm.models import ComposedDraft
from replydraft.llm.output_parser import parse_generator_output

__all__ = [
    "COMPOSE_MODEL",
    "AnthropicDraftGenerator",
    "ComposedDraft",
    "KnowledgeBase",
    "KnowledgeEntry",
    "compose_reply",
    "get_anthropic_client",
    "load_knowledge_base",
    "parse_generator_output",
]
