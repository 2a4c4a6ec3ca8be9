"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from carelink.config import (
    AppConfig,
    BookingConfig,
    GatewayConfig,
    StoreConfig,
    _safe_bool,
    _safe_float,
    _safe_int,
    _validate_config,
)


def _config(**sections) -> AppConfig:
    return AppConfig(
        store=sections.get("store", StoreConfig(backend="memory", collection="chats")),
        gateway=sections.get("gateway", GatewayConfig(backend="offline", temperature=0.7)),
        booking=sections.get("booking", BookingConfig()),
    )


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(_config())  # should not raise

    def test_unknown_store_backend(self):
        with pytest.raises(ValueError, match="STORE_BACKEND"):
            _validate_config(_config(store=StoreConfig(backend="redis")))

    def test_empty_collection(self):
        with pytest.raises(ValueError, match="CHAT_COLLECTION"):
            _validate_config(_config(store=StoreConfig(backend="memory", collection="  ")))

    def test_unknown_gateway_backend(self):
        with pytest.raises(ValueError, match="GATEWAY_BACKEND"):
            _validate_config(_config(gateway=GatewayConfig(backend="gemini")))

    @pytest.mark.parametrize("temperature", [3.0, -0.5])
    def test_invalid_temperature(self, temperature):
        gateway = GatewayConfig(backend="offline", temperature=temperature)
        with pytest.raises(ValueError, match="LLM_TEMPERATURE"):
            _validate_config(_config(gateway=gateway))

    def test_invalid_top_p(self):
        gateway = GatewayConfig(backend="offline", top_p=0.0)
        with pytest.raises(ValueError, match="LLM_TOP_P"):
            _validate_config(_config(gateway=gateway))

    def test_invalid_submit_timeout(self):
        booking = replace(BookingConfig(), submit_timeout_sec=0)
        with pytest.raises(ValueError, match="BOOKING_SUBMIT_TIMEOUT"):
            _validate_config(_config(booking=booking))

    def test_invalid_retry_budget(self):
        booking = replace(BookingConfig(), max_append_retries=0)
        with pytest.raises(ValueError, match="BOOKING_MAX_APPEND_RETRIES"):
            _validate_config(_config(booking=booking))

    def test_config_is_frozen(self):
        config = _config()
        with pytest.raises(AttributeError):
            config.log_level = "DEBUG"


class TestEnvParsing:
    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_float_parsing(self):
        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    def test_safe_int_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("CARELINK_TEST_INT", "ten")
        with pytest.raises(ValueError, match="CARELINK_TEST_INT"):
            _safe_int("CARELINK_TEST_INT", "1")

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("YES", True), ("off", False), ("false", False),
    ])
    def test_safe_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("CARELINK_TEST_BOOL", raw)
        assert _safe_bool("CARELINK_TEST_BOOL", "false") is expected
