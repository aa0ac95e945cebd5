"""Transition map defining all valid (state, event) -> state mappings for a draft."""

from enum import StrEnum

from replydraft.domain.types import DraftState


class DraftEvent(StrEnum):
    """Events that can trigger state transitions of a staged draft."""

    STAGE = "stage"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    EXPIRE = "expire"


# All valid (current_state, event_string) -> next_state mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[DraftState, str], DraftState] = {
    (DraftState.NONE, DraftEvent.STAGE): DraftState.STAGED,
    (DraftState.STAGED, DraftEvent.CONFIRM): DraftState.CONFIRMED,
    (DraftState.STAGED, DraftEvent.CANCEL): DraftState.CANCELLED,
    (DraftState.STAGED, DraftEvent.EXPIRE): DraftState.EXPIRED,
}

# States that reject all events -- a token is single-use.
TERMINAL_STATES: frozenset[DraftState] = frozenset(
    {DraftState.CONFIRMED, DraftState.CANCELLED, DraftState.EXPIRED}
)
