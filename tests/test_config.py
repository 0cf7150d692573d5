"""Tests for configuration loading and validation."""

from decimal import Decimal

import pytest

from booking_engine.config import (
    AppConfig,
    BookingConfig,
    DatabaseConfig,
    PaymentConfig,
    _validate_config,
)


def build_config(booking=None, payments=None, database=None) -> AppConfig:
    config = AppConfig.__new__(AppConfig)
    object.__setattr__(config, "booking", booking or BookingConfig())
    object.__setattr__(config, "payments", payments or PaymentConfig())
    object.__setattr__(config, "database", database or DatabaseConfig())
    object.__setattr__(config, "log_level", "INFO")
    return config


def booking_config(**overrides) -> BookingConfig:
    booking = BookingConfig.__new__(BookingConfig)
    values = {
        "request_expiry_hours": 72,
        "disable_past_dates": True,
        "booking_number_attempts": 5,
        "ics_timezone": "Europe/Berlin",
    }
    values.update(overrides)
    for name, value in values.items():
        object.__setattr__(booking, name, value)
    return booking


def payment_config(**overrides) -> PaymentConfig:
    payments = PaymentConfig.__new__(PaymentConfig)
    values = {
        "platform_fee_percentage": Decimal("10"),
        "deposit_percentage": Decimal("30"),
        "deposit_due_days": 7,
        "final_payment_days_before_event": 14,
    }
    values.update(overrides)
    for name, value in values.items():
        object.__setattr__(payments, name, value)
    return payments


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_expiry_hours_must_be_positive(self):
        config = build_config(booking=booking_config(request_expiry_hours=0))
        with pytest.raises(ValueError, match="REQUEST_EXPIRY_HOURS"):
            _validate_config(config)

    def test_booking_number_attempts_must_be_positive(self):
        config = build_config(booking=booking_config(booking_number_attempts=0))
        with pytest.raises(ValueError, match="BOOKING_NUMBER_ATTEMPTS"):
            _validate_config(config)

    def test_fee_percentage_above_100(self):
        config = build_config(payments=payment_config(platform_fee_percentage=Decimal("120")))
        with pytest.raises(ValueError, match="PLATFORM_FEE_PERCENTAGE"):
            _validate_config(config)

    def test_negative_deposit_percentage(self):
        config = build_config(payments=payment_config(deposit_percentage=Decimal("-1")))
        with pytest.raises(ValueError, match="DEPOSIT_PERCENTAGE"):
            _validate_config(config)

    def test_negative_final_payment_days(self):
        config = build_config(payments=payment_config(final_payment_days_before_event=-3))
        with pytest.raises(ValueError, match="FINAL_PAYMENT_DAYS_BEFORE_EVENT"):
            _validate_config(config)

    def test_empty_database_url(self):
        database = DatabaseConfig.__new__(DatabaseConfig)
        object.__setattr__(database, "url", "")
        object.__setattr__(database, "echo", False)
        with pytest.raises(ValueError, match="DATABASE_URL"):
            _validate_config(build_config(database=database))


class TestEnvParsing:
    def test_safe_int_parsing(self):
        from booking_engine.config import _safe_int

        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_bad_value(self, monkeypatch):
        from booking_engine.config import _safe_int

        monkeypatch.setenv("BOOKING_TEST_INT", "seventy")
        with pytest.raises(ValueError, match="BOOKING_TEST_INT"):
            _safe_int("BOOKING_TEST_INT", "1")

    def test_safe_decimal_parsing(self):
        from booking_engine.config import _safe_decimal

        assert _safe_decimal("NONEXISTENT_VAR_12345", "12.5") == Decimal("12.5")

    @pytest.mark.parametrize("raw,expected", [("1", True), ("TRUE", True), ("no", False), ("off", False)])
    def test_safe_bool_parsing(self, monkeypatch, raw, expected):
        from booking_engine.config import _safe_bool

        monkeypatch.setenv("BOOKING_TEST_FLAG", raw)
        assert _safe_bool("BOOKING_TEST_FLAG", "false") is expected

    def test_safe_bool_bad_value(self, monkeypatch):
        from booking_engine.config import _safe_bool

        monkeypatch.setenv("BOOKING_TEST_FLAG", "maybe")
        with pytest.raises(ValueError, match="BOOKING_TEST_FLAG"):
            _safe_bool("BOOKING_TEST_FLAG", "false")
