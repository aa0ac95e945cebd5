"""DraftLifecycle class with trigger, history, and valid_events."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from replydraft.confirmation.transitions import TERMINAL_STATES, TRANSITIONS
from replydraft.domain.errors import InvalidTransitionError
from replydraft.domain.types import DraftState

TransitionCallback = Callable[[str, str, DraftState, str, DraftState], Any]


class DraftLifecycle:
    """Finite state machine governing one staged draft's lifecycle.

    The staging store holds no lifecycle object between requests; each
    operation positions a lifecycle at the state implied by the store
    (``NONE`` before staging, ``STAGED`` for a claimed or live token) and
    applies one event.  ``on_transition`` is called after every successful
    transition, which is how transitions reach the audit trail.

    Usage::

        lc = DraftLifecycle("reply_abc", "thread-1")
        lc.trigger("stage")      # -> STAGED
        lc.trigger("confirm")    # -> CONFIRMED (terminal)
    """

    def __init__(
        self,
        token: str,
        thread_id: str,
        initial_state: DraftState = DraftState.NONE,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        self._token = token
        self._thread_id = thread_id
        self._state: DraftState = initial_state
        self._history: list[tuple[DraftState, str, DraftState]] = []
        self._on_transition = on_transition

    @property
    def token(self) -> str:
        return self._token

    @property
    def state(self) -> DraftState:
        """Return the current draft state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True if the draft is confirmed, cancelled, or expired."""
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> list[tuple[DraftState, str, DraftState]]:
        """Return a copy of the ``(from_state, event, to_state)`` history."""
        return list(self._history)

    def trigger(self, event: str) -> DraftState:
        """Apply an event to the current state and transition.

        Args:
            event: The event string (e.g. ``"confirm"``).

        Returns:
            The new state after the transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed from
                the current state, or if the draft is in a terminal state.
        """
        if self.is_terminal:
            raise InvalidTransitionError(self._state, event)

        key = (self._state, event)
        if key not in TRANSITIONS:
            raise InvalidTransitionError(self._state, event)

        old_state = self._state
        new_state = TRANSITIONS[key]
        self._history.append((old_state, event, new_state))
        self._state = new_state
        if self._on_transition is not None:
            self._on_transition(self._token, self._thread_id, old_state, event, new_state)
        return new_state

    def get_valid_events(self) -> list[str]:
        """Return a sorted list of events valid from the current state."""
        if self.is_terminal:
            return []
        return sorted(event for state, event in TRANSITIONS if state == self._state)
