"""Shared pytest fixtures for the reply draft assistant test suite."""

from __future__ import annotations

import pytest
from fakes import FakeClock, make_thread

from replydraft.domain.models import KnowledgeSnippet, ThreadContext


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_thread() -> ThreadContext:
    return make_thread()


@pytest.fixture
def pricing_snippet() -> KnowledgeSnippet:
    return KnowledgeSnippet(
        topic="pricing",
        category="Pricing",
        title="What are our pricing tiers?",
        text="Starter is $29/month. Growth is $99/month.",
    )
