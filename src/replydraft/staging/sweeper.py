"""Background eviction of expired drafts from the staging store.

The sweeper is an asyncio task tied to the application lifespan: started
on startup and cancelled on shutdown.  It only reclaims memory; expiry
correctness comes from the store's lazy checks on read.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from typing import Any

import structlog

from replydraft.audit.logger import AuditLogger
from replydraft.domain.models import DraftRecord
from replydraft.staging.store import DraftStore

logger = structlog.get_logger()

DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0


class DraftSweeper:
    """Periodically evict expired drafts from a ``DraftStore``.

    Args:
        store: The staging store to sweep.
        interval_seconds: Seconds between sweeps.  Must be shorter than
            the store's TTL (enforced by ``Settings``).
        on_expired: Optional callback receiving the evicted records of
            each sweep, e.g. to record the ``expired`` transition.
        audit_logger: Optional audit trail; failed sweeps are recorded as
            ``error`` events.
    """

    def __init__(
        self,
        store: DraftStore,
        interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        on_expired: Callable[[list[DraftRecord]], Any] | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._interval = interval_seconds
        self._on_expired = on_expired
        self._audit = audit_logger
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Return True while the background task is alive."""
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> list[DraftRecord]:
        """Run a single sweep and notify the callback.

        Returns:
            The records evicted by this sweep.
        """
        expired = self._store.sweep_expired()
        if expired:
            logger.info("expired_drafts_swept", count=len(expired))
            if self._on_expired is not None:
                self._on_expired(expired)
        return expired

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception as exc:
                logger.exception("Draft sweep failed")
                if self._audit is not None:
                    self._audit.log_error(str(exc) or type(exc).__name__, context="draft_sweeper")

    def start(self) -> None:
        """Start the background sweep loop.  No-op if already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Draft sweeper started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Draft sweeper stopped")
