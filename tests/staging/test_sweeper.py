"""Tests for the DraftSweeper background task."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from pathlib import Path

import pytest
from fakes import FakeClock

from replydraft.audit.logger import AuditLogger
from replydraft.audit.store import init_audit_db, query_audit_trail
from replydraft.domain.models import DraftContent, DraftRecord
from replydraft.staging.store import InMemoryDraftStore
from replydraft.staging.sweeper import DraftSweeper


def _stage(store: InMemoryDraftStore) -> str:
    return store.stage(
        DraftContent(thread_id="t-1", to=("jane@client.com",), subject="Re: Hi", body="Hello")
    )


class TestSweepOnce:
    def test_evicts_and_notifies(self, clock: FakeClock):
        store = InMemoryDraftStore(ttl=timedelta(minutes=10), clock=clock)
        notified: list[DraftRecord] = []
        sweeper = DraftSweeper(store, interval_seconds=60, on_expired=notified.extend)
        token = _stage(store)
        clock.advance(minutes=10)

        evicted = sweeper.sweep_once()

        assert [r.token for r in evicted] == [token]
        assert [r.token for r in notified] == [token]
        assert len(store) == 0

    def test_nothing_expired_skips_callback(self, clock: FakeClock):
        store = InMemoryDraftStore(ttl=timedelta(minutes=10), clock=clock)
        notified: list[DraftRecord] = []
        sweeper = DraftSweeper(store, interval_seconds=60, on_expired=notified.extend)
        _stage(store)

        assert sweeper.sweep_once() == []
        assert notified == []

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError, match="interval_seconds must be positive"):
            DraftSweeper(InMemoryDraftStore(), interval_seconds=0)


class TestBackgroundLoop:
    @pytest.mark.anyio()
    async def test_start_sweeps_periodically_and_stop_cancels(self, clock: FakeClock):
        store = InMemoryDraftStore(ttl=timedelta(minutes=10), clock=clock)
        notified: list[DraftRecord] = []
        sweeper = DraftSweeper(store, interval_seconds=0.01, on_expired=notified.extend)
        _stage(store)
        clock.advance(minutes=10)

        sweeper.start()
        assert sweeper.running
        for _ in range(100):
            if notified:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert len(notified) == 1
        assert not sweeper.running

    @pytest.mark.anyio()
    async def test_sweep_errors_do_not_stop_the_loop(self):
        calls = 0

        class FlakyStore(InMemoryDraftStore):
            def sweep_expired(self) -> list[DraftRecord]:
                nonlocal calls
                calls += 1
                if calls == 1:
                    raise RuntimeError("boom")
                return []

        conn = init_audit_db(Path(":memory:"))
        sweeper = DraftSweeper(FlakyStore(), interval_seconds=0.01, audit_logger=AuditLogger(conn))
        sweeper.start()
        for _ in range(100):
            if calls >= 2:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert calls >= 2
        errors = query_audit_trail(conn, event_type="error")
        assert len(errors) == 1
        assert errors[0]["metadata"] == {"error_message": "boom", "context": "draft_sweeper"}

    @pytest.mark.anyio()
    async def test_stop_without_start_is_noop(self):
        sweeper = DraftSweeper(InMemoryDraftStore(), interval_seconds=1)
        await sweeper.stop()
        assert not sweeper.running
