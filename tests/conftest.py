"""Shared test fixtures and helpers."""

import asyncio
from dataclasses import replace
from typing import Optional

import pytest

from carelink.booking.ledger import BookingLedgerWriter
from carelink.config import AppConfig, BookingConfig, GatewayConfig, StoreConfig
from carelink.gateway.base import ResponseGateway
from carelink.schemas.booking_schema import BookingForm
from carelink.store.memory import InMemoryDocumentStore
from carelink.sync.transcript import TranscriptSynchronizer

TEST_USER = "uid-test"
TEST_PATH = f"chats/{TEST_USER}"


class ScriptedGateway(ResponseGateway):
    """Gateway double returning queued replies or raising a fixed error."""

    def __init__(
        self,
        replies: Optional[list[str]] = None,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.delay = delay
        self.calls: list[list[dict[str, str]]] = []

    async def send(self, history: list[dict[str, str]]) -> str:
        self.calls.append([dict(entry) for entry in history])
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return "I'm here for you."


def make_config(**booking_overrides) -> AppConfig:
    """AppConfig with short timeouts suitable for tests."""
    booking = BookingConfig(
        submit_timeout_sec=0.2,
        notice_clear_sec=0.1,
        max_append_retries=3,
        atomic_append=True,
    )
    return AppConfig(
        store=StoreConfig(backend="memory", collection="chats", credentials_path=None),
        gateway=GatewayConfig(backend="offline"),
        booking=replace(booking, **booking_overrides),
        log_level="DEBUG",
        app_name="test-app",
    )


def make_message_doc(text: str, sender: str = "user", message_id: Optional[str] = None) -> dict:
    doc = {"text": text, "sender": sender, "createdAt": "2025-09-15T10:00:00.000+00:00"}
    if message_id is not None:
        doc["id"] = message_id
    return doc


def make_booking_doc(booking_id: str = "BK-1-AAAA", service: str = "helpline") -> dict:
    return {
        "id": booking_id,
        "serviceType": service,
        "date": "2025-09-20",
        "time": "9:00 AM",
        "note": "",
        "createdAt": "2025-09-15T10:00:00.000+00:00",
    }


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def gateway():
    return ScriptedGateway()


@pytest.fixture
def synchronizer(store, gateway):
    sync = TranscriptSynchronizer(store, gateway, collection="chats")
    sync.bind(TEST_USER)
    return sync


@pytest.fixture
def ledger(store, config):
    writer = BookingLedgerWriter(store, config.booking, collection="chats")
    writer.bind(TEST_USER)
    return writer


@pytest.fixture
def counselor_form():
    return BookingForm(service_type="counselor", date="2025-10-01", time="10:00 AM", note="")
