"""Chat transcript message model."""

import hashlib
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from carelink.utils import generate_message_id, utc_now_iso


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


# Older documents stored assistant turns as "bot".
_SENDER_ALIASES: dict[str, Sender] = {
    "user": Sender.USER,
    "assistant": Sender.ASSISTANT,
    "bot": Sender.ASSISTANT,
    "model": Sender.ASSISTANT,
}


def _legacy_message_id(index: int, sender: Sender, text: str) -> str:
    digest = hashlib.sha1(f"{index}:{sender.value}:{text}".encode("utf-8")).hexdigest()
    return f"legacy-{digest[:16]}"


class Message(BaseModel):
    """
    A single chat message.

    ``seq`` and ``pending`` are local bookkeeping only: ``seq`` orders the
    messages this client appended, ``pending`` marks messages not yet seen
    in a remote snapshot. Neither is written to the store.
    """

    id: str = Field(default_factory=generate_message_id)
    text: str
    sender: Sender
    created_at: str = Field(default_factory=utc_now_iso)
    seq: int = 0
    pending: bool = False

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "sender": self.sender.value,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, raw: Any, index: int) -> "Message":
        """Parse one stored message.

        Entries without an id get one derived from position, sender, and
        text, so parsing the same document twice yields the same ids.

        Raises:
            ValueError: If the entry is not a mapping with string text and
                a known sender.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"Message at index {index} is not an object")
        text = raw.get("text")
        if not isinstance(text, str):
            raise ValueError(f"Message at index {index} has no text")
        sender = _SENDER_ALIASES.get(str(raw.get("sender", "")).lower())
        if sender is None:
            raise ValueError(f"Message at index {index} has unknown sender {raw.get('sender')!r}")
        message_id = raw.get("id") or _legacy_message_id(index, sender, text)
        created_at = raw.get("createdAt") or raw.get("created_at") or ""
        return cls(id=str(message_id), text=text, sender=sender, created_at=str(created_at))

    def to_history_entry(self) -> dict[str, str]:
        """Role/text pair handed to the response gateway."""
        return {"role": self.sender.value, "text": self.text}
