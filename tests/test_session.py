"""Integration tests: session sign-in/out with both writers on one document."""

import asyncio

import pytest

from carelink.schemas.booking_schema import BookingForm, BookingOutcome
from carelink.schemas.transcript_schema import Sender
from carelink.session import SupportSession
from carelink.logging_context import get_user_id

from tests.conftest import TEST_PATH, TEST_USER, ScriptedGateway, make_booking_doc, make_message_doc


async def _settle(session: SupportSession) -> None:
    await session.wait_idle()
    await asyncio.sleep(0)


class TestSignIn:
    @pytest.mark.asyncio
    async def test_first_access_creates_empty_document(self, config, store, gateway):
        session = SupportSession(config, store, gateway)
        await session.sign_in(TEST_USER)

        assert session.signed_in
        assert store.peek(TEST_PATH) == {"messages": [], "bookings": []}
        assert session.transcript.messages == []
        assert session.ledger.bookings == []
        assert get_user_id() == TEST_USER

    @pytest.mark.asyncio
    async def test_loads_existing_transcript_and_bookings(self, config, store, gateway):
        store.seed(TEST_PATH, {
            "messages": [make_message_doc("hello", "user", "m1")],
            "bookings": [make_booking_doc()],
        })
        session = SupportSession(config, store, gateway)
        await session.sign_in(TEST_USER)

        assert [m.text for m in session.transcript.messages] == ["hello"]
        assert len(session.ledger.bookings) == 1
        assert store.subscriber_count(TEST_PATH) == 1


class TestSignOut:
    @pytest.mark.asyncio
    async def test_flushes_state_and_detaches(self, config, store, gateway):
        store.seed(TEST_PATH, {"messages": [make_message_doc("hello", "user", "m1")]})
        session = SupportSession(config, store, gateway)
        await session.sign_in(TEST_USER)

        session.sign_out()

        assert not session.signed_in
        assert session.transcript.messages == []
        assert session.ledger.bookings == []
        assert store.subscriber_count(TEST_PATH) == 0

        await store.set(TEST_PATH, {"messages": [make_message_doc("late", "user", "m2")]})
        await asyncio.sleep(0)
        assert session.transcript.messages == []

    @pytest.mark.asyncio
    async def test_switching_users_detaches_previous(self, config, store, gateway):
        session = SupportSession(config, store, gateway)
        await session.sign_in(TEST_USER)
        await session.sign_in("uid-other")

        assert session.user_id == "uid-other"
        assert store.subscriber_count(TEST_PATH) == 0
        assert store.subscriber_count("chats/uid-other") == 1

    @pytest.mark.asyncio
    async def test_booking_in_flight_does_not_leak_to_next_user(self, config, store, gateway):
        store.set_latency("array_union", 0.1)
        session = SupportSession(config, store, gateway)
        await session.sign_in("uid-alice")

        pending = asyncio.ensure_future(session.book(
            BookingForm(service_type="counselor", date="2025-10-01", time="10:00 AM")
        ))
        await asyncio.sleep(0.02)
        session.sign_out()
        await session.sign_in("uid-bob")
        session.ledger.open_modal()
        session.ledger.form.note = "bob's draft"

        result = await pending
        await _settle(session)

        assert result.outcome == BookingOutcome.SUCCEEDED
        assert session.ledger.bookings == []
        assert session.ledger.confirmation is None
        assert session.ledger.modal_open
        assert session.ledger.form.note == "bob's draft"
        assert session.ledger.is_submitting is False
        assert [b["id"] for b in store.peek("chats/uid-alice")["bookings"]] == [result.booking.id]
        assert store.peek("chats/uid-bob")["bookings"] == []


class TestCoLocatedDocument:
    @pytest.mark.asyncio
    async def test_chat_and_booking_share_document(self, config, store):
        gateway = ScriptedGateway(replies=["I'm glad you reached out."])
        session = SupportSession(config, store, gateway)
        await session.sign_in(TEST_USER)

        session.send("I'd like to talk to someone")
        await _settle(session)
        result = await session.book(
            BookingForm(service_type="counselor", date="2025-10-01", time="10:00 AM")
        )
        await _settle(session)

        doc = store.peek(TEST_PATH)
        assert [m["sender"] for m in doc["messages"]] == ["user", "assistant"]
        assert [b["id"] for b in doc["bookings"]] == [result.booking.id]
        assert [b.id for b in session.ledger.bookings] == [result.booking.id]
        assert not any(m.pending for m in session.transcript.messages)

    @pytest.mark.asyncio
    async def test_second_tab_converges(self, config, store):
        tab_a = SupportSession(config, store, ScriptedGateway(replies=["reply from A"]))
        tab_b = SupportSession(config, store, ScriptedGateway())
        await tab_a.sign_in(TEST_USER)
        await tab_b.sign_in(TEST_USER)

        tab_a.send("sent in tab A")
        await _settle(tab_a)
        await asyncio.sleep(0)

        contents = [(m.text, m.sender) for m in tab_b.transcript.messages]
        assert contents == [("sent in tab A", Sender.USER), ("reply from A", Sender.ASSISTANT)]
        assert [m.id for m in tab_b.transcript.messages] == [
            m.id for m in tab_a.transcript.messages
        ]
