"""Conversation initialization state machine.

States:
    UNINITIALIZED → INITIALIZING → READY
    INITIALIZING → UNINITIALIZED (both conversation setup and onboarding failed)
    READY → UNINITIALIZED (reset)
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

log = logging.getLogger(__name__)


class InitializationState(str, Enum):
    """Initialization lifecycle states."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


_VALID_TRANSITIONS: dict[InitializationState, set[InitializationState]] = {
    InitializationState.UNINITIALIZED: {InitializationState.INITIALIZING},
    InitializationState.INITIALIZING: {InitializationState.READY, InitializationState.UNINITIALIZED},
    InitializationState.READY: {InitializationState.UNINITIALIZED},
}


@dataclass
class StateTransition:
    """Record of a state transition."""

    from_state: InitializationState
    to_state: InitializationState
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    reason: str | None = None


class InitializationStateMachine:
    """Guards conversation initialization against concurrent or repeated runs."""

    def __init__(self) -> None:
        self._state = InitializationState.UNINITIALIZED
        self._history: list[StateTransition] = []

    @property
    def state(self) -> InitializationState:
        """Get the current state."""
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        """Get the transition history."""
        return self._history.copy()

    @property
    def is_ready(self) -> bool:
        return self._state == InitializationState.READY

    def can_transition_to(self, new_state: InitializationState) -> bool:
        return new_state in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, new_state: InitializationState, reason: str | None = None) -> bool:
        """Attempt to transition to a new state.

        Args:
            new_state: The target state
            reason: Optional reason for the transition

        Returns:
            True if the transition succeeded, False if it was invalid
        """
        if not self.can_transition_to(new_state):
            log.debug(f"Ignoring initialization transition: {self._state.value} → {new_state.value}")
            return False

        old_state = self._state
        self._state = new_state
        self._history.append(StateTransition(from_state=old_state, to_state=new_state, reason=reason))
        log.debug(f"Initialization state: {old_state.value} → {new_state.value}" + (f" (reason: {reason})" if reason else ""))
        return True

    def __repr__(self) -> str:
        return f"InitializationStateMachine(state={self._state.value}, transitions={len(self._history)})"
