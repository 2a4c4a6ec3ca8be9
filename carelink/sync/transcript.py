"""
Transcript synchronizer.

Keeps the in-memory chat transcript for one user consistent with the
remote session document and with generated replies.

Local input is visible immediately: ``append_user_message`` appends a
pending message synchronously and schedules the store write and the
gateway call as tasks. Remote state wins eventually: each snapshot
replaces every confirmed message, and a pending message survives only
until its id shows up in a snapshot.

Usage:
    sync = TranscriptSynchronizer(store, gateway, collection="chats")
    sync.bind("uid-1")
    sync.append_user_message("I can't sleep lately")
    await sync.wait_idle()
"""

import asyncio
from typing import Awaitable, Callable, Optional

from carelink.exceptions import StoreError
from carelink.gateway.base import FAILURE_MESSAGES, ResponseGateway, classify_failure
from carelink.logging_context import get_session_logger
from carelink.schemas.session_schema import MESSAGES_FIELD, parse_messages
from carelink.schemas.transcript_schema import Message, Sender
from carelink.store.base import DocumentSnapshot, DocumentStore
from carelink.utils import document_path

logger = get_session_logger(__name__)

TranscriptListener = Callable[[list[Message]], None]


def _fingerprint(messages: list[Message]) -> list[tuple]:
    return [(m.id, m.text, m.sender, m.pending) for m in messages]


class TranscriptSynchronizer:
    """Ordered message list for one user, mirrored to the session document."""

    def __init__(
        self,
        store: DocumentStore,
        gateway: ResponseGateway,
        collection: str,
        on_change: Optional[TranscriptListener] = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._collection = collection
        self._on_change = on_change
        self._user_id: Optional[str] = None
        self._messages: list[Message] = []
        self._next_seq = 1
        self._epoch = 0
        self._write_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self.input_buffer = ""
        self.write_failures = 0

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def path(self) -> Optional[str]:
        if self._user_id is None:
            return None
        return document_path(self._collection, self._user_id)

    def history(self) -> list[dict[str, str]]:
        """Role/text pairs for the gateway, oldest first."""
        return [m.to_history_entry() for m in self._messages]

    def bind(self, user_id: str) -> None:
        self._user_id = user_id

    def reset(self) -> None:
        """Forget the transcript and detach from the user (sign-out).

        In-flight writes and gateway calls are not cancelled; their
        results are discarded once they land.
        """
        self._epoch += 1
        self._user_id = None
        self._messages = []
        self.input_buffer = ""
        self._changed()

    # ------------------------------------------------------------------ #
    # Local appends
    # ------------------------------------------------------------------ #

    def append_user_message(self, text: Optional[str] = None) -> Message:
        """Append a user message and kick off the write and the reply.

        Uses ``input_buffer`` when ``text`` is omitted. Returns without
        waiting for the store or the gateway.

        Raises:
            ValueError: If the text is blank.
        """
        if text is None:
            text = self.input_buffer
        if not text or not text.strip():
            raise ValueError("Message text must not be blank")

        message = self._append(Sender.USER, text)
        self.input_buffer = ""
        self._spawn(self._persist(), "persist")
        self._spawn(self._request_reply(self.history(), self._epoch), "reply")
        return message

    def receive_generated_reply(self, text: str) -> Message:
        """Append a generated assistant reply and persist the transcript."""
        message = self._append(Sender.ASSISTANT, text)
        self._spawn(self._persist(), "persist")
        return message

    def receive_gateway_failure(self, exc: BaseException) -> Message:
        """Append the user-facing explanation for a failed reply and persist it."""
        reason = classify_failure(exc)
        logger.warning("Response gateway failed (%s): %s", reason.value, exc)
        return self.receive_generated_reply(FAILURE_MESSAGES[reason])

    def _append(self, sender: Sender, text: str) -> Message:
        message = Message(text=text, sender=sender, seq=self._next_seq, pending=True)
        self._next_seq += 1
        self._messages.append(message)
        self._changed()
        return message

    # ------------------------------------------------------------------ #
    # Remote reconciliation
    # ------------------------------------------------------------------ #

    def on_remote_snapshot(self, snapshot: Optional[DocumentSnapshot]) -> None:
        """Reconcile the transcript with a delivered document state.

        The remote list replaces all confirmed local messages. Local
        pending messages already in the snapshot are confirmed; the rest
        stay, after the remote list, in local send order.
        """
        try:
            remote = parse_messages(snapshot.data if snapshot is not None else None)
        except StoreError as exc:
            logger.error("Ignoring malformed transcript snapshot: %s", exc)
            return

        local_by_id = {m.id: m for m in self._messages}
        for message in remote:
            local = local_by_id.get(message.id)
            if local is not None:
                message.seq = local.seq

        remote_ids = {m.id for m in remote}
        unconfirmed = sorted(
            (m for m in self._messages if m.pending and m.id not in remote_ids),
            key=lambda m: m.seq,
        )
        merged = remote + unconfirmed
        if _fingerprint(merged) == _fingerprint(self._messages):
            return

        self._messages = merged
        self._changed()
        logger.debug(
            "Applied remote snapshot: %d messages, %d still pending",
            len(remote), len(unconfirmed),
        )

    # ------------------------------------------------------------------ #
    # Background work
    # ------------------------------------------------------------------ #

    async def _persist(self) -> bool:
        """Merge-write the current transcript. Failures are logged, not retried."""
        async with self._write_lock:
            path = self.path
            if path is None:
                logger.debug("No signed-in user; transcript kept locally only")
                return False
            payload = {MESSAGES_FIELD: [m.to_document() for m in self._messages]}
            try:
                await self._store.set(path, payload, merge=True)
            except StoreError as exc:
                self.write_failures += 1
                logger.warning(
                    "Transcript write to %s failed (%s); keeping local state",
                    path, exc.kind.value,
                )
                return False
        return True

    async def _request_reply(self, history: list[dict[str, str]], epoch: int) -> None:
        try:
            text = await self._gateway.send(history)
        except Exception as exc:
            if epoch == self._epoch:
                self.receive_gateway_failure(exc)
            return
        if epoch != self._epoch:
            logger.debug("Discarding reply for a session that has ended")
            return
        self.receive_generated_reply(text)

    def _spawn(self, coro: Awaitable, name: str) -> None:
        task = asyncio.ensure_future(coro)
        task.set_name(f"transcript-{name}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Transcript task %s failed", task.get_name(), exc_info=task.exception()
            )

    async def wait_idle(self) -> None:
        """Wait until every scheduled write and reply has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.messages)
