"""
Error types raised at the store and gateway boundaries.

Each boundary exposes a closed set of failure kinds so callers can match
on ``kind`` / ``reason`` instead of inspecting provider-specific error
objects. Adapters translate SDK exceptions into these before they leave
the adapter.
"""

from enum import Enum


class StoreErrorKind(str, Enum):
    """Why a remote document read or write failed."""

    NETWORK = "network"
    PERMISSION_DENIED = "permission_denied"
    MALFORMED_DOCUMENT = "malformed_document"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"


class GatewayErrorReason(str, Enum):
    """Why the generative response provider failed."""

    API_KEY_INVALID = "api_key_invalid"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK_UNAVAILABLE = "network_unavailable"
    UNKNOWN = "unknown"


class StoreError(Exception):
    """
    Raised when the remote document store cannot complete a get, set,
    or append.

    The ``kind`` attribute tells the caller whether retrying could help
    (CONFLICT, NETWORK) or not (PERMISSION_DENIED, MALFORMED_DOCUMENT).
    """

    def __init__(self, kind: StoreErrorKind, message: str = "") -> None:
        self.kind = kind
        self.message = message or kind.value
        super().__init__(f"[{kind.value}] {self.message}")


class GatewayError(Exception):
    """Raised when the response gateway fails to produce a reply."""

    def __init__(self, reason: GatewayErrorReason, message: str = "") -> None:
        self.reason = reason
        self.message = message or reason.value
        super().__init__(f"[{reason.value}] {self.message}")
