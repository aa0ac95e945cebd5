"""Two-phase prepare/confirm workflow for reply drafts.

``prepare`` gathers context, generates and parses a draft, and stages it
under a fresh confirmation token.  Nothing reaches the user's mailbox until
a later ``confirm`` presents that exact token while the draft is still
live.  ``confirm`` claims the token atomically, so of two concurrent
confirms only one can proceed; the other sees a stale token.

If the mail-creation hand-off fails after a successful claim, the draft is
restored under the same token so the user can retry, up to
``mail_creation_attempts`` total attempts, after which it is discarded.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable
from datetime import datetime

import structlog

from replydraft.audit.logger import AuditLogger
from replydraft.confirmation.machine import DraftLifecycle
from replydraft.confirmation.preview import format_preview, summarize_context
from replydraft.confirmation.transitions import DraftEvent
from replydraft.context.orchestrator import ContextOrchestrator, compile_context
from replydraft.context.sources import DraftGenerator, MailCreator
from replydraft.domain.errors import (
    DownstreamCreationError,
    FatalGatherError,
    GenerationError,
    StaleTokenError,
)
from replydraft.domain.models import (
    ConfirmResult,
    DraftContent,
    DraftRecord,
    PartialWarning,
    PrepareResult,
)
from replydraft.domain.types import (
    ConfirmErrorCode,
    DraftState,
    ParseConfidence,
    StaleReason,
    WarningReason,
    WarningSource,
)
from replydraft.llm.output_parser import parse_generator_output
from replydraft.observability.metrics import (
    DRAFTS_PREPARED,
    DRAFTS_STAGED,
    DraftOutcome,
    record_outcome,
)
from replydraft.staging.store import DraftStore, utc_now

logger = structlog.get_logger()

DEFAULT_MAIL_CREATION_ATTEMPTS = 2


class ConfirmationProtocol:
    """Ties each staged draft's lifecycle to explicit client actions.

    Args:
        orchestrator: Gathers thread, history and knowledge context.
        generator: Produces draft prose from compiled context.
        mail_creator: Creates the confirmed draft in the user's mailbox.
        store: Staging area for drafts awaiting confirmation.
        audit_logger: Optional audit trail for lifecycle events.
        agent_email: The assistant's own mailbox, never a reply recipient.
        mail_creation_attempts: Total hand-off attempts per draft.
        invalidate_superseded: Cancel older live drafts for a thread when
            a new draft is prepared for it.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        orchestrator: ContextOrchestrator,
        generator: DraftGenerator,
        mail_creator: MailCreator,
        store: DraftStore,
        *,
        audit_logger: AuditLogger | None = None,
        agent_email: str = "",
        mail_creation_attempts: int = DEFAULT_MAIL_CREATION_ATTEMPTS,
        invalidate_superseded: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if mail_creation_attempts < 1:
            raise ValueError("mail_creation_attempts must be at least 1")
        self._orchestrator = orchestrator
        self._generator = generator
        self._mail_creator = mail_creator
        self._store = store
        self._audit = audit_logger
        self._agent_email = agent_email
        self._max_attempts = mail_creation_attempts
        self._invalidate_superseded = invalidate_superseded
        self._clock = clock
        store.set_expiry_listener(self.record_expired)

    @property
    def store(self) -> DraftStore:
        return self._store

    # ------------------------------------------------------------------
    # Lifecycle bookkeeping
    # ------------------------------------------------------------------

    def _record_transition(
        self,
        token: str,
        thread_id: str,
        from_state: DraftState,
        event: str,
        to_state: DraftState,
        reason: str | None = None,
    ) -> None:
        logger.info(
            "draft_state_transition",
            token=token,
            thread_id=thread_id,
            from_state=from_state,
            event=event,
            to_state=to_state,
            reason=reason,
        )
        if self._audit is not None:
            self._audit.log_state_transition(
                token=token,
                thread_id=thread_id,
                from_state=from_state,
                to_state=to_state,
                event=event,
                metadata={"reason": reason} if reason else None,
            )

    def _transition(
        self,
        token: str,
        thread_id: str,
        from_state: DraftState,
        event: DraftEvent,
        reason: str | None = None,
    ) -> DraftState:
        lifecycle = DraftLifecycle(
            token,
            thread_id,
            initial_state=from_state,
            on_transition=functools.partial(self._record_transition, reason=reason),
        )
        return lifecycle.trigger(event)

    def _update_staged_gauge(self) -> None:
        DRAFTS_STAGED.set(len(self._store))

    def record_expired(self, records: list[DraftRecord]) -> None:
        """Record the ``staged -> expired`` transition for evicted drafts.

        Called by the store for lazily reclaimed drafts and by the sweeper
        for swept ones.
        """
        for record in records:
            self._transition(record.token, record.thread_id, DraftState.STAGED, DraftEvent.EXPIRE)
            record_outcome(DraftOutcome.EXPIRED)
        self._update_staged_gauge()

    # ------------------------------------------------------------------
    # prepare
    # ------------------------------------------------------------------

    async def _generate(self, compiled_context: str, instructions: str) -> str:
        try:
            return await asyncio.to_thread(
                self._generator.generate_draft_text, compiled_context, instructions
            )
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(f"Draft generation failed: {exc}") from exc

    def _cancel_superseded(self, thread_id: str) -> None:
        for old_token in self._store.tokens_for_thread(thread_id):
            try:
                self._store.claim(old_token)
            except StaleTokenError:
                continue
            self._transition(old_token, thread_id, DraftState.STAGED, DraftEvent.CANCEL, reason="superseded")
            record_outcome(DraftOutcome.CANCELLED)

    async def prepare(
        self,
        user_instructions: str,
        thread_hint: str | None = None,
        talking_points: list[str] | None = None,
    ) -> PrepareResult:
        """Gather context, generate a draft, and stage it for confirmation.

        Args:
            user_instructions: What the reply should do, and (if no
                ``thread_hint``) which thread it answers.
            thread_hint: ID of the thread to reply to.
            talking_points: Points the reply must cover.

        Returns:
            The confirmation token, a preview, the staged draft, and any
            non-fatal warnings.

        Raises:
            FatalGatherError: The target thread could not be resolved.
            GenerationError: The draft generator failed.
        """
        try:
            gathered = await self._orchestrator.gather_context(
                user_instructions, thread_hint=thread_hint, talking_points=talking_points
            )
            compiled = compile_context(gathered, talking_points)
            raw_output = await self._generate(compiled, user_instructions)
        except (FatalGatherError, GenerationError) as exc:
            logger.warning(
                "prepare_failed",
                thread_hint=thread_hint,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            if self._audit is not None:
                self._audit.log_prepare_failed(thread_hint, type(exc).__name__, str(exc))
            raise

        thread = gathered.thread
        parsed = parse_generator_output(raw_output, thread, agent_email=self._agent_email)

        warnings: list[PartialWarning] = list(gathered.warnings)
        if parsed.confidence == ParseConfidence.LOW:
            warnings.append(
                PartialWarning(
                    source=WarningSource.PARSER,
                    reason=WarningReason.DEGRADED,
                    detail=", ".join(parsed.fallbacks),
                )
            )

        if self._invalidate_superseded:
            self._cancel_superseded(thread.thread_id)

        content = DraftContent(
            thread_id=thread.thread_id,
            to=parsed.to,
            subject=parsed.subject,
            body=parsed.body,
            headers=parsed.headers,
            context_summary=summarize_context(gathered),
        )
        token = self._store.stage(content)
        record = self._store.peek(token)
        if record is None:
            raise StaleTokenError(token, StaleReason.EXPIRED)

        self._transition(token, thread.thread_id, DraftState.NONE, DraftEvent.STAGE)
        if self._audit is not None:
            self._audit.log_draft_prepared(record, parsed.confidence, warnings)
        DRAFTS_PREPARED.inc()
        self._update_staged_gauge()

        logger.info(
            "draft_prepared",
            token=token,
            thread_id=thread.thread_id,
            recipients=len(record.to),
            body_chars=len(record.body),
            parse_confidence=parsed.confidence,
            warnings=len(warnings),
        )
        return PrepareResult(
            token=token,
            preview_text=format_preview(record, self._clock(), warnings),
            draft=record,
            partial_warnings=warnings,
            parse_confidence=parsed.confidence,
        )

    # ------------------------------------------------------------------
    # confirm / cancel
    # ------------------------------------------------------------------

    def get_draft(self, token: str) -> DraftRecord | None:
        """Return the live draft for *token* without consuming it."""
        return self._store.peek(token)

    def preview(self, token: str) -> str | None:
        """Return the preview text for a live draft, or ``None`` on a miss."""
        record = self._store.peek(token)
        if record is None:
            return None
        return format_preview(record, self._clock())

    async def confirm(self, token: str, edited_body: str | None = None) -> ConfirmResult:
        """Create the staged draft in the user's mailbox.

        Args:
            token: The confirmation token returned by ``prepare``.
            edited_body: Replacement body text.  ``None`` or blank keeps
                the staged body.

        Returns:
            A result that distinguishes success, an expired token, an
            unknown or already-used token, and a failed hand-off (with
            ``retryable`` set when the draft was kept for another attempt).
        """
        try:
            record = self._store.claim(token)
        except StaleTokenError as exc:
            record_outcome(DraftOutcome.STALE)
            self._update_staged_gauge()
            logger.info("confirm_stale_token", token=token, reason=exc.reason)
            error = (
                ConfirmErrorCode.EXPIRED
                if exc.reason == StaleReason.EXPIRED
                else ConfirmErrorCode.NOT_FOUND
            )
            return ConfirmResult(success=False, token=token, error=error, message=str(exc))

        edited = bool(edited_body and edited_body.strip())
        body = edited_body if edited and edited_body is not None else record.body

        try:
            external_id = await asyncio.to_thread(
                self._mail_creator.create_mail_draft,
                record.to,
                record.subject,
                body,
                record.headers,
                record.thread_id,
            )
        except Exception as exc:
            return self._handle_creation_failure(record, body, exc)

        self._transition(token, record.thread_id, DraftState.STAGED, DraftEvent.CONFIRM)
        if self._audit is not None:
            self._audit.log_draft_confirmed(record, body, external_id, edited)
        record_outcome(DraftOutcome.CONFIRMED)
        self._update_staged_gauge()

        logger.info(
            "draft_confirmed",
            token=token,
            thread_id=record.thread_id,
            external_draft_id=external_id,
            edited=edited,
        )
        return ConfirmResult(
            success=True,
            token=token,
            external_draft_id=external_id,
            message="Draft created in mailbox",
        )

    def _handle_creation_failure(
        self, record: DraftRecord, body: str, exc: Exception
    ) -> ConfirmResult:
        attempts = record.creation_attempts + 1
        retryable = False
        if attempts < self._max_attempts:
            retained = record.model_copy(update={"creation_attempts": attempts, "body": body})
            retryable = self._store.restore(retained)
            if not retryable and retained.is_expired(self._clock()):
                self.record_expired([retained])

        if retryable:
            message = (
                f"Creating the draft failed ({exc}). The draft is kept under the "
                "same token; confirm again to retry."
            )
        else:
            message = (
                f"Creating the draft failed ({exc}) after {attempts} attempt(s); "
                "the draft was discarded. Prepare a new draft to continue."
            )
            if attempts >= self._max_attempts:
                self._transition(
                    record.token,
                    record.thread_id,
                    DraftState.STAGED,
                    DraftEvent.CANCEL,
                    reason="mail_creation_failed",
                )
        error = DownstreamCreationError(record.token, attempts, retryable, message)

        logger.error(
            "mail_creation_failed",
            token=record.token,
            thread_id=record.thread_id,
            attempts=error.attempts,
            retryable=error.retryable,
            error=str(exc),
        )
        if self._audit is not None:
            self._audit.log_mail_creation_failed(
                record.token, record.thread_id, attempts, retryable, str(exc)
            )
        record_outcome(DraftOutcome.MAIL_CREATION_FAILED)
        self._update_staged_gauge()

        return ConfirmResult(
            success=False,
            token=record.token,
            error=ConfirmErrorCode.MAIL_CREATION_FAILED,
            retryable=error.retryable,
            message=str(error),
        )

    def cancel(self, token: str) -> bool:
        """Discard the staged draft for *token*.

        Returns:
            ``True`` if a live draft was cancelled, ``False`` on a miss.
        """
        try:
            record = self._store.claim(token)
        except StaleTokenError:
            return False

        self._transition(token, record.thread_id, DraftState.STAGED, DraftEvent.CANCEL)
        record_outcome(DraftOutcome.CANCELLED)
        self._update_staged_gauge()
        return True
