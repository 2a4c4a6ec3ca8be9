"""
Finite state machine for one booking submission at a time.

    IDLE -> SUBMITTING -> {SUCCEEDED, FAILED, TIMED_OUT} -> IDLE

Only the first terminal trigger from SUBMITTING is accepted, so a late
completion arriving after the timeout guard fired is rejected instead of
flipping UI state a second time.

Usage:
    sm = BookingStateMachine()
    sm.transition(BookingTrigger.SUBMIT)
    sm.transition(BookingTrigger.TIME_OUT)
    sm.transition(BookingTrigger.RELEASE)
    assert sm.current_state == BookingState.IDLE
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class BookingState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class BookingTrigger(str, Enum):
    SUBMIT = "submit"
    SUCCEED = "succeed"
    FAIL = "fail"
    TIME_OUT = "time_out"
    RELEASE = "release"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: BookingState
    to_state: BookingState
    trigger: BookingTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: BookingState
    entered_at: datetime
    trigger: Optional[BookingTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


TERMINAL_STATES = frozenset(
    {BookingState.SUCCEEDED, BookingState.FAILED, BookingState.TIMED_OUT}
)


class BookingStateMachine:
    """Table-driven submission state with a visit history."""

    TRANSITIONS: list[Transition] = [
        Transition(BookingState.IDLE, BookingState.SUBMITTING, BookingTrigger.SUBMIT),

        # --- Outcomes, first one wins ---
        Transition(BookingState.SUBMITTING, BookingState.SUCCEEDED, BookingTrigger.SUCCEED),
        Transition(BookingState.SUBMITTING, BookingState.FAILED, BookingTrigger.FAIL),
        Transition(BookingState.SUBMITTING, BookingState.TIMED_OUT, BookingTrigger.TIME_OUT),

        # --- Back to idle ---
        Transition(BookingState.SUCCEEDED, BookingState.IDLE, BookingTrigger.RELEASE),
        Transition(BookingState.FAILED, BookingState.IDLE, BookingTrigger.RELEASE),
        Transition(BookingState.TIMED_OUT, BookingState.IDLE, BookingTrigger.RELEASE),
    ]

    def __init__(self) -> None:
        self._current_state = BookingState.IDLE
        self._history: list[StateEntry] = [
            StateEntry(state=BookingState.IDLE, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> BookingState:
        return self._current_state

    @property
    def is_submitting(self) -> bool:
        return self._current_state == BookingState.SUBMITTING

    def can_transition(self, trigger: BookingTrigger) -> bool:
        return trigger in self.get_valid_triggers()

    def transition(self, trigger: BookingTrigger) -> BookingState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Booking state: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[BookingTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]
