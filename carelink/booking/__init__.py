from carelink.booking.directory import COUNSELOR_DIRECTORY, get_contact
from carelink.booking.ledger import BookingLedgerWriter
from carelink.booking.state_machine import (
    BookingState,
    BookingStateMachine,
    BookingTrigger,
    InvalidTransitionError,
)

__all__ = [
    "BookingLedgerWriter",
    "BookingState",
    "BookingStateMachine",
    "BookingTrigger",
    "COUNSELOR_DIRECTORY",
    "InvalidTransitionError",
    "get_contact",
]
