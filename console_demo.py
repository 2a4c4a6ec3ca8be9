"""
Offline console demo: runs the support chat and booking flow in a terminal.

Uses the real transcript synchronizer and booking ledger writer against the
in-memory document store and the offline gateway. No API keys, no network.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario timeout

Commands in interactive mode:
    /book <counselor|helpline> <YYYY-MM-DD> <time slot> [note]
    /bookings   list stored bookings
    /offline    toggle simulated connectivity
    /slow       make store reads slower than the booking timeout
    /signout    sign out and exit
"""

import argparse
import asyncio
from dataclasses import replace
from typing import Optional

from carelink.config import AppConfig, load_config
from carelink.gateway import OfflineResponseGateway, ResponseGateway
from carelink.schemas.booking_schema import TIME_SLOTS, BookingForm, BookingOutcome
from carelink.schemas.transcript_schema import Message, Sender
from carelink.session import SupportSession
from carelink.store import DocumentStore, InMemoryDocumentStore

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_USER_ID = "demo-user"


class ConsoleSession:
    """Drives a SupportSession from terminal input."""

    SCENARIOS: dict[str, list[str]] = {
        "chat": [
            "I've been feeling really anxious about exams",
            "I also can't sleep well",
        ],
        "booking": [
            "I think I'd like to talk to a counselor",
            "/book counselor 2025-10-01 10:00 AM first visit",
            "/bookings",
        ],
        "timeout": [
            "/slow",
            "/book helpline 2025-10-02 2:00 PM",
            "/bookings",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(
        self,
        config: AppConfig,
        store: Optional[DocumentStore] = None,
        gateway: Optional[ResponseGateway] = None,
    ) -> None:
        self.config = config
        self.store = store or InMemoryDocumentStore()
        self._online = True
        self._shown = 0
        self.session = SupportSession(
            config,
            self.store,
            gateway or OfflineResponseGateway(),
            is_online=lambda: self._online,
            on_transcript_change=self._render,
        )

    def _render(self, messages: list[Message]) -> None:
        if len(messages) < self._shown:
            self._shown = 0
        for message in messages[self._shown:]:
            if message.sender == Sender.ASSISTANT:
                print(f"{GREEN}{BOLD}[Support]{RESET} {GREEN}{message.text}{RESET}")
        self._shown = len(messages)

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SUPPORT CHAT - {title}{RESET}")
        print(f"{BOLD}  App: {self.config.app_name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        await self.session.sign_in(DEMO_USER_ID)
        for step in steps:
            print(f"\n{BLUE}[You] {RESET}{step}")
            await self._process_input(step)
            await self.session.transcript.wait_idle()

        await self.session.wait_idle()
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Booking state trace: {' -> '.join(self.session.ledger.state_trace)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        self.session.sign_out()

    async def run(self, user_id: str = DEMO_USER_ID) -> None:
        self._banner("Console")
        print(f"{DIM}Type /signout to exit. Time slots: {', '.join(TIME_SLOTS)}{RESET}")
        await self.session.sign_in(user_id)

        while self.session.signed_in:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[You] {RESET}")).strip()
            if not user_input:
                continue
            await self._process_input(user_input[: self.MAX_INPUT_LENGTH])
            await self.session.transcript.wait_idle()

        await self.session.wait_idle()
        print(f"\n{DIM}Session ended.{RESET}")

    async def _process_input(self, text: str) -> None:
        if not text.startswith("/"):
            self.session.send(text)
            return

        command, _, rest = text.partition(" ")
        if command == "/book":
            await self._handle_book(rest)
        elif command == "/bookings":
            bookings = self.session.ledger.bookings
            if not bookings:
                self.system_log("No bookings yet")
            for booking in bookings:
                self.system_log(
                    f"{booking.id}: {booking.service_type.value} on {booking.date} at {booking.time}"
                )
        elif command == "/offline":
            self._online = not self._online
            self.system_log(f"Connectivity: {'online' if self._online else 'offline'}")
        elif command == "/slow":
            if isinstance(self.store, InMemoryDocumentStore):
                self.store.set_latency("get", self.config.booking.submit_timeout_sec + 0.5)
                self.system_log("Store reads now slower than the booking timeout")
        elif command == "/signout":
            self.session.sign_out()
        else:
            self.system_log(f"Unknown command: {command}")

    async def _handle_book(self, args: str) -> None:
        parts = args.split()
        if len(parts) < 4:
            self.system_log("Usage: /book <counselor|helpline> <YYYY-MM-DD> <H:MM> <AM|PM> [note]")
            return
        form = BookingForm(
            service_type=parts[0],
            date=parts[1],
            time=f"{parts[2]} {parts[3].upper()}",
            note=" ".join(parts[4:]),
        )
        self.system_log("Submitting booking...")
        result = await self.session.book(form)
        colour = GREEN if result.outcome == BookingOutcome.SUCCEEDED else YELLOW
        print(f"{colour}{BOLD}[Booking]{RESET} {colour}{result.message}{RESET}")
        if result.confirmation is not None:
            contact = result.confirmation.contact
            self.system_log(f"Reference: {result.confirmation.booking.id}")
            self.system_log(f"Contact: {contact.name}, {contact.phone}, {contact.email}")
            self.system_log(f"Where: {contact.location} ({contact.hours})")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    config = load_config()
    if args.scenario == "timeout":
        config = replace(config, booking=replace(config.booking, submit_timeout_sec=1.0))
    console = ConsoleSession(config)
    if args.scenario:
        asyncio.run(console.run_scenario(args.scenario))
    else:
        asyncio.run(console.run())


if __name__ == "__main__":
    main()
