"""Prometheus metrics instrumentation for the reply draft assistant.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus the draft metrics below.
- ``DRAFTS_STAGED``: Gauge tracking live records in the staging store.
- ``DRAFTS_PREPARED``: Counter of drafts staged by successful prepares.
- ``DRAFT_OUTCOMES``: Counter of how staged drafts (and confirm attempts) ended.

Metrics are updated by the confirmation protocol as events happen.
"""

from __future__ import annotations

from enum import StrEnum

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator


class DraftOutcome(StrEnum):
    """Label values for ``DRAFT_OUTCOMES``."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    STALE = "stale"
    MAIL_CREATION_FAILED = "mail_creation_failed"


DRAFTS_STAGED: Gauge = Gauge(
    "reply_drafts_staged",
    "Number of drafts currently held in the staging store",
)

DRAFTS_PREPARED: Counter = Counter(
    "reply_drafts_prepared_total",
    "Total number of drafts staged by successful prepare calls",
)

DRAFT_OUTCOMES: Counter = Counter(
    "reply_draft_outcomes_total",
    "Terminal outcomes of staged drafts and confirm attempts",
    ["outcome"],
)


def record_outcome(outcome: DraftOutcome) -> None:
    """Increment the outcome counter for *outcome*."""
    DRAFT_OUTCOMES.labels(outcome=outcome.value).inc()


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
