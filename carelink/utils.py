"""Shared utilities used across the support client."""

import time
import uuid
from datetime import datetime, timezone


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def generate_booking_id() -> str:
    """Generate a time-derived booking id.

    Examples:
        >>> generate_booking_id().startswith("BK-")
        True
    """
    millis = int(time.time() * 1000)
    return f"BK-{millis}-{uuid.uuid4().hex[:4].upper()}"


def generate_message_id() -> str:
    return uuid.uuid4().hex


def document_path(collection: str, user_id: str) -> str:
    """Build the per-user document path.

    Examples:
        >>> document_path("chats", "uid-1")
        'chats/uid-1'
    """
    collection = collection.strip("/")
    user_id = user_id.strip()
    if not collection or not user_id or "/" in user_id:
        raise ValueError(f"Invalid document path components: {collection!r}, {user_id!r}")
    return f"{collection}/{user_id}"
