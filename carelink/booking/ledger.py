"""
Booking ledger writer.

Appends a booking to the ``bookings`` array of the user's session
document while keeping the submit control live: a timeout guard releases
the submitting state after ``submit_timeout_sec`` whether or not the
write has finished. The guard does not cancel the write; a late result is
logged and otherwise only shows up in the stored data.

Two append strategies:
- atomic: read to validate the document, then ``array_union``.
- versioned: read-modify-write with the snapshot's version token,
  re-reading on conflict up to ``max_append_retries`` times.
"""

import asyncio
from typing import Callable, Optional

from pydantic import ValidationError

from carelink.booking.directory import get_contact
from carelink.booking.state_machine import BookingState, BookingStateMachine, BookingTrigger
from carelink.config import BookingConfig
from carelink.exceptions import StoreError, StoreErrorKind
from carelink.logging_context import get_session_logger
from carelink.schemas.booking_schema import (
    Booking,
    BookingConfirmation,
    BookingForm,
    BookingOutcome,
    BookingResult,
)
from carelink.schemas.session_schema import BOOKINGS_FIELD, parse_bookings, raw_bookings
from carelink.store.base import ABSENT, DocumentSnapshot, DocumentStore
from carelink.utils import document_path

logger = get_session_logger(__name__)

SUCCESS_MESSAGE = "Your session has been booked confidentially."
FAILURE_MESSAGE = "Error booking session. Please try again."
OFFLINE_MESSAGE = "You appear to be offline. Please reconnect and try again."
TIMEOUT_MESSAGE = "Request timed out. Please try again."
UNAVAILABLE_MESSAGE = "Unable to book right now. Please try again shortly."
BUSY_MESSAGE = "A booking is already being submitted."

_OUTCOMES: dict[BookingTrigger, BookingOutcome] = {
    BookingTrigger.SUCCEED: BookingOutcome.SUCCEEDED,
    BookingTrigger.FAIL: BookingOutcome.FAILED,
    BookingTrigger.TIME_OUT: BookingOutcome.TIMED_OUT,
}


class BookingLedgerWriter:
    """Submits bookings for the bound user and tracks submit UI state."""

    def __init__(
        self,
        store: DocumentStore,
        config: BookingConfig,
        collection: str,
        is_online: Callable[[], bool] = lambda: True,
    ) -> None:
        self._store = store
        self._config = config
        self._collection = collection
        self._is_online = is_online
        self._sm = BookingStateMachine()
        self._user_id: Optional[str] = None
        self._in_flight: set[asyncio.Task] = set()
        self._abandoned: set[str] = set()
        self._notice_handle: Optional[asyncio.TimerHandle] = None
        self._epoch = 0
        self.form = BookingForm()
        self.modal_open = False
        self.confirmation: Optional[BookingConfirmation] = None
        self.status_message = ""
        self.bookings: list[Booking] = []

    @property
    def state(self) -> BookingState:
        return self._sm.current_state

    @property
    def is_submitting(self) -> bool:
        return self._sm.is_submitting

    @property
    def state_trace(self) -> list[str]:
        return self._sm.get_state_trace()

    @property
    def path(self) -> Optional[str]:
        if self._user_id is None:
            return None
        return document_path(self._collection, self._user_id)

    def bind(self, user_id: str) -> None:
        self._user_id = user_id

    def reset(self) -> None:
        """Drop per-user state on sign-out.

        A submit still in flight keeps running; its outcome only moves the
        state machine and no longer touches the form, confirmation, or list.
        """
        self._epoch += 1
        self._user_id = None
        self.bookings = []
        self.confirmation = None
        self.modal_open = False
        self.form.reset()
        self._set_status("")

    def open_modal(self) -> None:
        self.modal_open = True
        self.confirmation = None
        self._set_status("")

    def close_modal(self) -> None:
        self.modal_open = False

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    async def submit(self, form: Optional[BookingForm] = None) -> BookingResult:
        """Validate ``form`` (default: ``self.form``) and append it as a booking.

        Never raises for store or network failures; the outcome is in the
        returned result and in ``status_message``.
        """
        form = form if form is not None else self.form

        missing = form.missing_fields()
        if missing:
            return BookingResult(
                outcome=BookingOutcome.REJECTED,
                message=f"Please fill in: {', '.join(missing)}.",
                missing_fields=missing,
            )
        if self.state != BookingState.IDLE:
            return BookingResult(outcome=BookingOutcome.REJECTED, message=BUSY_MESSAGE)
        try:
            booking = form.to_booking()
        except ValidationError as exc:
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
            return BookingResult(
                outcome=BookingOutcome.REJECTED,
                message=f"Please check: {', '.join(fields)}.",
                missing_fields=fields,
            )

        path = self.path
        if path is None:
            self._set_status(UNAVAILABLE_MESSAGE)
            return BookingResult(outcome=BookingOutcome.FAILED, message=UNAVAILABLE_MESSAGE)

        epoch = self._epoch
        self._sm.transition(BookingTrigger.SUBMIT)
        self._set_status("")

        if not self._is_online():
            logger.warning("Offline; booking %s not sent", booking.id)
            return self._finish(BookingTrigger.FAIL, booking, form, OFFLINE_MESSAGE, epoch)

        task = asyncio.ensure_future(self._append(path, booking))
        task.set_name(f"booking-append-{booking.id}")
        self._in_flight.add(task)
        task.add_done_callback(lambda t, booking_id=booking.id: self._append_done(t, booking_id))

        try:
            done, _ = await asyncio.wait({task}, timeout=self._config.submit_timeout_sec)
        except asyncio.CancelledError:
            self._abandoned.add(booking.id)
            logger.warning("Submit of booking %s cancelled; releasing submit state", booking.id)
            self._sm.transition(BookingTrigger.FAIL)
            self._sm.transition(BookingTrigger.RELEASE)
            raise

        if not done:
            self._abandoned.add(booking.id)
            logger.warning(
                "Booking %s still pending after %.1fs; releasing submit state",
                booking.id, self._config.submit_timeout_sec,
            )
            return self._finish(BookingTrigger.TIME_OUT, booking, form, TIMEOUT_MESSAGE, epoch)

        exc = task.exception()
        if exc is not None:
            if isinstance(exc, StoreError):
                logger.error("Booking %s failed (%s): %s", booking.id, exc.kind.value, exc)
            else:
                logger.error("Booking %s failed", booking.id, exc_info=exc)
            return self._finish(BookingTrigger.FAIL, booking, form, FAILURE_MESSAGE, epoch)

        logger.info(
            "Booking created: %s for %s on %s at %s",
            booking.id, booking.service_type.value, booking.date, booking.time,
        )
        return self._finish(BookingTrigger.SUCCEED, booking, form, SUCCESS_MESSAGE, epoch)

    def _finish(
        self,
        trigger: BookingTrigger,
        booking: Booking,
        form: BookingForm,
        message: str,
        epoch: int,
    ) -> BookingResult:
        self._sm.transition(trigger)
        if epoch != self._epoch:
            logger.info("Booking %s finished after sign-out; local state left as is", booking.id)
            result = BookingResult(outcome=_OUTCOMES[trigger], message=message, booking=booking)
        elif trigger == BookingTrigger.SUCCEED:
            confirmation = BookingConfirmation(
                booking=booking, contact=get_contact(booking.service_type)
            )
            self.confirmation = confirmation
            self.modal_open = False
            form.reset()
            if all(b.id != booking.id for b in self.bookings):
                self.bookings.append(booking)
            self._set_status(message)
            result = BookingResult(
                outcome=BookingOutcome.SUCCEEDED,
                message=message,
                booking=booking,
                confirmation=confirmation,
            )
        elif trigger == BookingTrigger.TIME_OUT:
            self._set_status(message, clear_after=self._config.notice_clear_sec)
            result = BookingResult(
                outcome=BookingOutcome.TIMED_OUT, message=message, booking=booking
            )
        else:
            self._set_status(message)
            result = BookingResult(outcome=BookingOutcome.FAILED, message=message, booking=booking)
        self._sm.transition(BookingTrigger.RELEASE)
        return result

    # ------------------------------------------------------------------ #
    # Append strategies
    # ------------------------------------------------------------------ #

    async def _append(self, path: str, booking: Booking) -> None:
        entry = booking.to_document()
        if self._config.atomic_append and self._store.supports_atomic_append:
            snapshot = await self._store.get(path)
            raw_bookings(snapshot.data if snapshot is not None else None)
            await self._store.array_union(path, BOOKINGS_FIELD, [entry])
            return

        attempts = self._config.max_append_retries
        for attempt in range(1, attempts + 1):
            snapshot = await self._store.get(path)
            existing = raw_bookings(snapshot.data if snapshot is not None else None)
            version = snapshot.version if snapshot is not None else ABSENT
            try:
                await self._store.set(
                    path, {BOOKINGS_FIELD: existing + [entry]}, merge=True,
                    expected_version=version,
                )
                return
            except StoreError as exc:
                if exc.kind != StoreErrorKind.CONFLICT:
                    raise
                logger.info(
                    "Booking append conflict on %s (attempt %d/%d); re-reading",
                    path, attempt, attempts,
                )
        raise StoreError(
            StoreErrorKind.CONFLICT, f"{path} kept changing; gave up after {attempts} attempts"
        )

    def _append_done(self, task: asyncio.Task, booking_id: str) -> None:
        self._in_flight.discard(task)
        exc = None if task.cancelled() else task.exception()
        if booking_id in self._abandoned:
            self._abandoned.discard(booking_id)
            if exc is None and not task.cancelled():
                logger.info("Late completion: booking %s was stored after timeout", booking_id)
            else:
                logger.warning("Late failure: booking %s was not stored: %s", booking_id, exc)

    async def wait_for_pending(self) -> None:
        """Wait for appends that outlived their timeout guard."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Remote state and notices
    # ------------------------------------------------------------------ #

    def on_remote_snapshot(self, snapshot: Optional[DocumentSnapshot]) -> None:
        """Replace the local booking list with the delivered one."""
        try:
            self.bookings = parse_bookings(snapshot.data if snapshot is not None else None)
        except StoreError as exc:
            logger.error("Ignoring malformed booking snapshot: %s", exc)

    def _set_status(self, message: str, clear_after: Optional[float] = None) -> None:
        if self._notice_handle is not None:
            self._notice_handle.cancel()
            self._notice_handle = None
        self.status_message = message
        if clear_after is not None:
            loop = asyncio.get_running_loop()
            self._notice_handle = loop.call_later(clear_after, self._clear_status, message)

    def _clear_status(self, message: str) -> None:
        self._notice_handle = None
        if self.status_message == message:
            self.status_message = ""
