"""Per-user session document: transcript and booking ledger side by side."""

from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from carelink.exceptions import StoreError, StoreErrorKind
from carelink.schemas.booking_schema import Booking
from carelink.schemas.transcript_schema import Message

MESSAGES_FIELD = "messages"
BOOKINGS_FIELD = "bookings"


def empty_document() -> dict[str, list]:
    """Fields written on a user's first authenticated access."""
    return {MESSAGES_FIELD: [], BOOKINGS_FIELD: []}


def parse_messages(data: Optional[dict[str, Any]]) -> list[Message]:
    """Parse the transcript out of raw document data.

    A missing document or field is an empty transcript.

    Raises:
        StoreError: MALFORMED_DOCUMENT if the field or an entry is invalid.
    """
    raw = (data or {}).get(MESSAGES_FIELD) or []
    if not isinstance(raw, list):
        raise StoreError(StoreErrorKind.MALFORMED_DOCUMENT, "'messages' is not a list")
    try:
        return [Message.from_document(entry, index) for index, entry in enumerate(raw)]
    except ValueError as exc:
        raise StoreError(StoreErrorKind.MALFORMED_DOCUMENT, str(exc)) from exc


def raw_bookings(data: Optional[dict[str, Any]]) -> list[dict[str, Any]]:
    """Return the stored booking array without parsing its entries.

    Raises:
        StoreError: MALFORMED_DOCUMENT if the field is present but not a list.
    """
    raw = (data or {}).get(BOOKINGS_FIELD)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise StoreError(StoreErrorKind.MALFORMED_DOCUMENT, "'bookings' is not a list")
    return list(raw)


def parse_bookings(data: Optional[dict[str, Any]]) -> list[Booking]:
    try:
        return [Booking.from_document(entry) for entry in raw_bookings(data)]
    except (KeyError, TypeError, ValidationError) as exc:
        raise StoreError(StoreErrorKind.MALFORMED_DOCUMENT, f"invalid booking: {exc}") from exc


class SessionDocument(BaseModel):
    """Parsed view of ``<collection>/<user_id>``."""

    messages: list[Message] = Field(default_factory=list)
    bookings: list[Booking] = Field(default_factory=list)

    @classmethod
    def from_data(cls, data: Optional[dict[str, Any]]) -> "SessionDocument":
        return cls(messages=parse_messages(data), bookings=parse_bookings(data))
