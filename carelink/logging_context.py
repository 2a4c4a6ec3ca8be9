"""Signed-in user context for log records.

``SupportSession`` sets the user id on sign-in and clears it on sign-out.
``configure_logging`` installs a ``UserIdFilter`` on the root handlers so
every record, including ones from store and gateway adapters, carries
``user_id`` and the shared format prints it.

Usage:
    configure_logging("INFO")
    set_user_id("uid-abc123")
    logger.info("Booking submitted")
    # 2025-10-01 10:00:00 [carelink.booking.ledger] INFO (uid-abc123): Booking submitted
"""

import logging
from contextvars import ContextVar

SIGNED_OUT = "-"

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s (%(user_id)s): %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_user_id: ContextVar[str] = ContextVar("user_id", default=SIGNED_OUT)


def set_user_id(user_id: str) -> None:
    _user_id.set(user_id)


def get_user_id() -> str:
    """User id of the session bound in this context, or ``SIGNED_OUT``."""
    return _user_id.get()


def clear_user_id() -> None:
    _user_id.set(SIGNED_OUT)


class UserIdFilter(logging.Filter):
    """Stamps the current user id onto records that do not carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "user_id"):
            record.user_id = _user_id.get()  # type: ignore[attr-defined]
        return True


def configure_logging(level: str) -> None:
    """Set up root logging with the user-aware format.

    Handlers that already exist on the root logger get the filter too, so
    ``%(user_id)s`` never fails to resolve.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, UserIdFilter) for f in handler.filters):
            handler.addFilter(UserIdFilter())


def get_session_logger(name: str) -> logging.Logger:
    """Return a logger whose records always carry ``user_id``.

    Used by the session-scoped writers so their records format correctly
    even under handlers that ``configure_logging`` did not set up.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, UserIdFilter) for f in logger.filters):
        logger.addFilter(UserIdFilter())
    return logger
