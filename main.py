"""
Support chat client entry point.

Builds the document store and response gateway from configuration and
runs an interactive terminal session against them.

Usage:
    Configured backends:  python main.py chat <user-id>
    Console mode:         python main.py console
"""

import asyncio
import logging
import sys

from carelink.config import load_config

logger = logging.getLogger(__name__)


def _run_chat_mode(user_id: str) -> None:
    """Run against the configured store and gateway (may need credentials)."""
    from console_demo import ConsoleSession
    from carelink.gateway import build_gateway
    from carelink.store import build_store

    config = load_config()
    store = build_store(config.store)
    gateway = build_gateway(config.gateway)
    logger.info("Starting chat for %s", user_id)
    asyncio.run(ConsoleSession(config, store, gateway).run(user_id))


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    asyncio.run(ConsoleSession(load_config()).run())


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    elif len(sys.argv) > 2 and sys.argv[1] == "chat":
        _run_chat_mode(sys.argv[2])
    else:
        print(__doc__)
        sys.exit(1)
