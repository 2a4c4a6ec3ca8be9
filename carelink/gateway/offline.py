"""
Offline gateway with canned supportive replies, no network or API keys.

Used by the console demo. Replies are picked by simple keyword match on
the latest user message.
"""

import asyncio
import logging

from carelink.exceptions import GatewayError, GatewayErrorReason
from carelink.gateway.base import ResponseGateway

logger = logging.getLogger(__name__)

CANNED_REPLIES: dict[str, str] = {
    "anxious": (
        "It sounds like you're feeling anxious. Try taking a slow breath in for "
        "four counts and out for six. Would you like to talk about what's on your mind?"
    ),
    "stress": (
        "Stress can feel overwhelming. What's been weighing on you the most lately?"
    ),
    "sleep": (
        "Trouble sleeping is really common when things feel heavy. "
        "Have you noticed anything that makes it better or worse?"
    ),
    "sad": (
        "I'm sorry you're feeling low. You don't have to go through this alone. "
        "Would it help to talk about it, or to book a session with a counselor?"
    ),
    "counselor": (
        "You can book a confidential session with an on-campus counselor "
        "using the booking form."
    ),
}

DEFAULT_REPLY = (
    "Thank you for sharing that with me. I'm here to listen. "
    "Can you tell me a little more about how you're feeling?"
)


class OfflineResponseGateway(ResponseGateway):
    """Keyword-matched replies with an optional artificial delay."""

    def __init__(self, delay_sec: float = 0.0) -> None:
        self._delay_sec = delay_sec

    async def send(self, history: list[dict[str, str]]) -> str:
        if self._delay_sec:
            await asyncio.sleep(self._delay_sec)
        user_turns = [entry["text"] for entry in history if entry["role"] == "user"]
        if not user_turns:
            raise GatewayError(GatewayErrorReason.UNKNOWN, "No user message to respond to")
        latest = user_turns[-1].lower()
        for keyword, reply in CANNED_REPLIES.items():
            if keyword in latest:
                return reply
        return DEFAULT_REPLY
