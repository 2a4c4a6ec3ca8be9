"""
Centralized configuration with environment variable overrides.

Store, gateway, and booking settings are resolved once by ``load_config()``
and handed to each component at construction time. Nothing in the
synchronizer or ledger reads the environment directly.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from carelink.logging_context import configure_logging

load_dotenv()

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("memory", "firestore")
GATEWAY_BACKENDS = ("offline", "openai")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default)
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class StoreConfig:
    """Remote document store settings."""

    backend: str = os.getenv("STORE_BACKEND", "memory")
    collection: str = os.getenv("CHAT_COLLECTION", "chats")
    credentials_path: Optional[str] = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or None


@dataclass(frozen=True)
class GatewayConfig:
    """Generative response provider settings."""

    backend: str = os.getenv("GATEWAY_BACKEND", "offline")
    api_key: Optional[str] = os.getenv("OPENAI_API_KEY") or None
    base_url: Optional[str] = os.getenv("OPENAI_BASE_URL") or None
    model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    temperature: float = _safe_float("LLM_TEMPERATURE", "0.7")
    top_p: float = _safe_float("LLM_TOP_P", "0.95")
    max_output_tokens: int = _safe_int("LLM_MAX_OUTPUT_TOKENS", "1024")
    request_timeout_sec: float = _safe_float("LLM_REQUEST_TIMEOUT", "30.0")


@dataclass(frozen=True)
class BookingConfig:
    """Booking submission guard and append strategy."""

    submit_timeout_sec: float = _safe_float("BOOKING_SUBMIT_TIMEOUT", "10.0")
    notice_clear_sec: float = _safe_float("BOOKING_NOTICE_CLEAR", "5.0")
    max_append_retries: int = _safe_int("BOOKING_MAX_APPEND_RETRIES", "3")
    atomic_append: bool = _safe_bool("BOOKING_ATOMIC_APPEND", "true")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    store: StoreConfig = field(default_factory=StoreConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "mental-health-mvp")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.store.backend not in STORE_BACKENDS:
        raise ValueError(
            f"STORE_BACKEND must be one of {STORE_BACKENDS}, got {config.store.backend!r}"
        )
    if not config.store.collection.strip():
        raise ValueError("CHAT_COLLECTION must not be empty")
    if config.gateway.backend not in GATEWAY_BACKENDS:
        raise ValueError(
            f"GATEWAY_BACKEND must be one of {GATEWAY_BACKENDS}, "
            f"got {config.gateway.backend!r}"
        )
    if not 0.0 <= config.gateway.temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.gateway.temperature}"
        )
    if not 0.0 < config.gateway.top_p <= 1.0:
        raise ValueError(f"LLM_TOP_P must be in (0.0, 1.0], got {config.gateway.top_p}")
    if config.gateway.max_output_tokens < 1:
        raise ValueError(
            f"LLM_MAX_OUTPUT_TOKENS must be >= 1, got {config.gateway.max_output_tokens}"
        )
    if config.gateway.request_timeout_sec <= 0:
        raise ValueError(
            f"LLM_REQUEST_TIMEOUT must be > 0, got {config.gateway.request_timeout_sec}"
        )
    if config.booking.submit_timeout_sec <= 0:
        raise ValueError(
            f"BOOKING_SUBMIT_TIMEOUT must be > 0, got {config.booking.submit_timeout_sec}"
        )
    if config.booking.notice_clear_sec <= 0:
        raise ValueError(
            f"BOOKING_NOTICE_CLEAR must be > 0, got {config.booking.notice_clear_sec}"
        )
    if config.booking.max_append_retries < 1:
        raise ValueError(
            "BOOKING_MAX_APPEND_RETRIES must be >= 1, "
            f"got {config.booking.max_append_retries}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    configure_logging(config.log_level)
    logger.info(
        "Configuration loaded for '%s' (store=%s, gateway=%s)",
        config.app_name, config.store.backend, config.gateway.backend,
    )
    return config
