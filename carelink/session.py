"""
Support session. Binds the signed-in user to the transcript and the
booking ledger.

Both writers share one document per user, ``<collection>/<user_id>``,
holding ``messages`` and ``bookings``. Each writer only ever merge-writes
its own field. A single subscription feeds every snapshot to both.
"""

from typing import Callable, Optional

from carelink.booking.ledger import BookingLedgerWriter
from carelink.config import AppConfig
from carelink.gateway.base import ResponseGateway
from carelink.logging_context import clear_user_id, get_session_logger, set_user_id
from carelink.schemas.booking_schema import BookingForm, BookingResult
from carelink.schemas.session_schema import empty_document
from carelink.schemas.transcript_schema import Message
from carelink.store.base import DocumentSnapshot, DocumentStore, Unsubscribe
from carelink.sync.transcript import TranscriptListener, TranscriptSynchronizer
from carelink.utils import document_path

logger = get_session_logger(__name__)


class SupportSession:
    """Per-user chat and booking state for one authenticated client."""

    def __init__(
        self,
        config: AppConfig,
        store: DocumentStore,
        gateway: ResponseGateway,
        is_online: Callable[[], bool] = lambda: True,
        on_transcript_change: Optional[TranscriptListener] = None,
    ) -> None:
        self._config = config
        self._store = store
        self._user_id: Optional[str] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self.transcript = TranscriptSynchronizer(
            store, gateway, config.store.collection, on_change=on_transcript_change
        )
        self.ledger = BookingLedgerWriter(
            store, config.booking, config.store.collection, is_online=is_online
        )

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def signed_in(self) -> bool:
        return self._user_id is not None

    async def sign_in(self, user_id: str) -> None:
        """Attach to the user's document, creating it on first access.

        Raises:
            StoreError: If the initial read or create fails.
        """
        if self._user_id == user_id:
            return
        if self._user_id is not None:
            self.sign_out()

        path = document_path(self._config.store.collection, user_id)
        set_user_id(user_id)
        snapshot = await self._store.get(path)
        if snapshot is None:
            logger.info("Creating session document %s", path)
            await self._store.set(path, empty_document(), merge=True)
            snapshot = await self._store.get(path)

        self._user_id = user_id
        self.transcript.bind(user_id)
        self.ledger.bind(user_id)
        self._route_snapshot(snapshot)
        self._unsubscribe = self._store.subscribe(path, self._route_snapshot)
        logger.info(
            "Signed in: %d messages, %d bookings",
            len(self.transcript.messages), len(self.ledger.bookings),
        )

    def sign_out(self) -> None:
        """Detach the subscription and flush in-memory state."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._user_id is not None:
            logger.info("Signed out")
        self._user_id = None
        self.transcript.reset()
        self.ledger.reset()
        clear_user_id()

    def _route_snapshot(self, snapshot: Optional[DocumentSnapshot]) -> None:
        self.transcript.on_remote_snapshot(snapshot)
        self.ledger.on_remote_snapshot(snapshot)

    # ------------------------------------------------------------------ #
    # Convenience for the presentation layer
    # ------------------------------------------------------------------ #

    def send(self, text: str) -> Message:
        return self.transcript.append_user_message(text)

    async def book(self, form: Optional[BookingForm] = None) -> BookingResult:
        return await self.ledger.submit(form)

    async def wait_idle(self) -> None:
        await self.transcript.wait_idle()
        await self.ledger.wait_for_pending()
