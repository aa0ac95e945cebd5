"""Time-bounded, concurrency-safe staging area for reply drafts.

Each staged draft lives under a single confirmation token until it is
claimed (confirm), removed (cancel), or expires.  Expiry is checked lazily
on every read, so correctness never depends on when the background sweep
last ran.

``DraftStore`` is the interface the confirmation protocol depends on.
``InMemoryDraftStore`` is the single-process implementation; a shared
TTL-capable key/value store with an atomic conditional delete can replace
it for multi-instance deployments.
"""

from __future__ import annotations

import secrets
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import structlog

from replydraft.domain.errors import StaleTokenError
from replydraft.domain.models import DraftContent, DraftRecord
from replydraft.domain.types import StaleReason

logger = structlog.get_logger()

TOKEN_PREFIX = "reply_"
TOKEN_BYTES = 24  # 192 bits of entropy
DEFAULT_TTL = timedelta(minutes=10)
MAX_TOKEN_ATTEMPTS = 8


def generate_token() -> str:
    """Return a fresh, unguessable confirmation token."""
    return f"{TOKEN_PREFIX}{secrets.token_urlsafe(TOKEN_BYTES)}"


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


ExpiryListener = Callable[[list[DraftRecord]], Any]


class DraftStore(Protocol):
    """Operations the confirmation protocol needs from a staging area."""

    def stage(self, content: DraftContent) -> str: ...

    def peek(self, token: str) -> DraftRecord | None: ...

    def remove(self, token: str) -> bool: ...

    def claim(self, token: str) -> DraftRecord: ...

    def restore(self, record: DraftRecord) -> bool: ...

    def tokens_for_thread(self, thread_id: str) -> list[str]: ...

    def sweep_expired(self) -> list[DraftRecord]: ...

    def set_expiry_listener(self, listener: ExpiryListener | None) -> None: ...

    def __len__(self) -> int: ...


class InMemoryDraftStore:
    """Mutex-protected map of confirmation token to staged draft.

    Every read and write happens under one ``threading.Lock`` so that the
    present-to-absent transition of a token is atomic for request handlers
    and the background sweeper alike.  No caller-supplied code runs while
    the lock is held.

    Args:
        ttl: How long a staged draft stays confirmable.
        clock: Returns the current UTC time.  Injected by tests to simulate
            expiry without sleeping.
        token_factory: Produces candidate tokens.  Injected by tests to
            force collisions.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utc_now,
        token_factory: Callable[[], str] = generate_token,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        self._ttl = ttl
        self._clock = clock
        self._token_factory = token_factory
        self._drafts: dict[str, DraftRecord] = {}
        self._lock = threading.Lock()
        self._expiry_listener: ExpiryListener | None = None

    @property
    def ttl(self) -> timedelta:
        """Return the staging duration applied to new drafts."""
        return self._ttl

    def set_expiry_listener(self, listener: ExpiryListener | None) -> None:
        """Register a callback for drafts reclaimed lazily on access.

        The listener runs outside the store lock with the expired records.
        Records evicted by ``sweep_expired`` are returned to its caller
        instead.
        """
        self._expiry_listener = listener

    def _notify_expired(self, records: list[DraftRecord]) -> None:
        if not records or self._expiry_listener is None:
            return
        try:
            self._expiry_listener(records)
        except Exception:
            logger.exception("Draft expiry listener failed")

    def stage(self, content: DraftContent) -> str:
        """Stage a draft under a freshly minted token.

        A generated token that collides with a live one is discarded and
        regenerated; an existing draft is never overwritten.

        Args:
            content: The draft fields to stage.

        Returns:
            The confirmation token for the staged draft.

        Raises:
            RuntimeError: If no unique token could be generated.
        """
        now = self._clock()
        reclaimed: list[DraftRecord] = []
        with self._lock:
            for _ in range(MAX_TOKEN_ATTEMPTS):
                token = self._token_factory()
                existing = self._drafts.get(token)
                if existing is None:
                    break
                if existing.is_expired(now):
                    reclaimed.append(existing)
                    break
                logger.warning("draft_token_collision", token_prefix=token[:12])
            else:
                raise RuntimeError("Could not generate a unique confirmation token")

            record = DraftRecord(
                **content.model_dump(),
                token=token,
                created_at=now,
                expires_at=now + self._ttl,
            )
            self._drafts[token] = record

        self._notify_expired(reclaimed)
        logger.debug("draft_staged", token=token, thread_id=content.thread_id)
        return token

    def peek(self, token: str) -> DraftRecord | None:
        """Return the staged draft for *token*, or ``None`` on a miss.

        An expired record is reclaimed and reported as a miss even if the
        sweep has not run yet.
        """
        now = self._clock()
        with self._lock:
            record = self._drafts.get(token)
            if record is None:
                return None
            if not record.is_expired(now):
                return record
            del self._drafts[token]
        logger.info("draft_expired_on_read", token=token)
        self._notify_expired([record])
        return None

    def remove(self, token: str) -> bool:
        """Remove *token* if present.  Idempotent; never raises.

        Returns:
            ``True`` if a live draft was removed, ``False`` otherwise.
        """
        now = self._clock()
        with self._lock:
            record = self._drafts.pop(token, None)
        if record is None:
            return False
        if record.is_expired(now):
            self._notify_expired([record])
            return False
        return True

    def claim(self, token: str) -> DraftRecord:
        """Atomically look up and remove the draft for *token*.

        Of any number of concurrent callers, exactly one receives the
        record; the rest observe a miss.

        Returns:
            The claimed draft record.

        Raises:
            StaleTokenError: If the token expired or is unknown.
        """
        now = self._clock()
        with self._lock:
            record = self._drafts.pop(token, None)
        if record is None:
            raise StaleTokenError(token, StaleReason.NOT_FOUND)
        if record.is_expired(now):
            self._notify_expired([record])
            raise StaleTokenError(token, StaleReason.EXPIRED)
        return record

    def restore(self, record: DraftRecord) -> bool:
        """Put a previously claimed record back under its own token.

        Used to keep a draft available after a failed hand-off.  The
        original expiry is kept, so a restore never extends a draft's life.

        Returns:
            ``True`` if the record is staged again, ``False`` if it has
            already expired or its token is live.
        """
        now = self._clock()
        if record.is_expired(now):
            return False
        with self._lock:
            if record.token in self._drafts:
                return False
            self._drafts[record.token] = record
        return True

    def tokens_for_thread(self, thread_id: str) -> list[str]:
        """Return the live tokens staged for *thread_id*, oldest first."""
        now = self._clock()
        with self._lock:
            live = [
                r for r in self._drafts.values() if r.thread_id == thread_id and not r.is_expired(now)
            ]
        return [r.token for r in sorted(live, key=lambda r: r.created_at)]

    def sweep_expired(self) -> list[DraftRecord]:
        """Remove every expired draft.

        Returns:
            The records that were evicted.
        """
        now = self._clock()
        with self._lock:
            expired = [r for r in self._drafts.values() if r.is_expired(now)]
            for record in expired:
                del self._drafts[record.token]
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)
