"""
Response gateway interface and failure classification.

A gateway takes the ordered chat history and returns generated text, or
raises. Whatever it raises is reduced to a ``GatewayErrorReason`` and
then to one user-facing message, so a failed reply is always shown in the
transcript instead of being dropped.
"""

import logging
from abc import ABC, abstractmethod

from carelink.exceptions import GatewayError, GatewayErrorReason

logger = logging.getLogger(__name__)

# Checked in order against the lower-cased error description.
FAILURE_PATTERNS: tuple[tuple[str, GatewayErrorReason], ...] = (
    ("api key", GatewayErrorReason.API_KEY_INVALID),
    ("api_key", GatewayErrorReason.API_KEY_INVALID),
    ("quota", GatewayErrorReason.QUOTA_EXCEEDED),
    ("rate limit", GatewayErrorReason.QUOTA_EXCEEDED),
    ("network", GatewayErrorReason.NETWORK_UNAVAILABLE),
    ("connection", GatewayErrorReason.NETWORK_UNAVAILABLE),
)

FAILURE_MESSAGES: dict[GatewayErrorReason, str] = {
    GatewayErrorReason.API_KEY_INVALID: (
        "There seems to be an issue with the API configuration. Please check back soon."
    ),
    GatewayErrorReason.QUOTA_EXCEEDED: (
        "I'm currently experiencing high demand. Please try again in a few moments."
    ),
    GatewayErrorReason.NETWORK_UNAVAILABLE: (
        "I'm having trouble connecting right now. Please check your internet "
        "connection and try again."
    ),
    GatewayErrorReason.UNKNOWN: (
        "I apologize, but I'm having trouble responding right now. Please try again."
    ),
}


def classify_failure(exc: BaseException) -> GatewayErrorReason:
    """Best-effort reason for a failed gateway call."""
    if isinstance(exc, GatewayError):
        return exc.reason
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return GatewayErrorReason.NETWORK_UNAVAILABLE
    description = f"{type(exc).__name__}: {exc}".lower()
    for pattern, reason in FAILURE_PATTERNS:
        if pattern in description:
            return reason
    return GatewayErrorReason.UNKNOWN


def failure_message(exc: BaseException) -> str:
    return FAILURE_MESSAGES[classify_failure(exc)]


class ResponseGateway(ABC):
    """Opaque request/response call to a generative model."""

    @abstractmethod
    async def send(self, history: list[dict[str, str]]) -> str:
        """Generate the next assistant reply.

        Args:
            history: Ordered ``{"role", "text"}`` entries, oldest first,
                roles ``user`` or ``assistant``.

        Raises:
            GatewayError: If no reply could be generated.
        """
