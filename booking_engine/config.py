"""
Centralized configuration with environment variable overrides.

Booking windows, payment terms and storage settings are configurable
here. Nothing in the lifecycle or store modules hardcodes these values.
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_decimal(env_var: str, default: str) -> Decimal:
    """Parse a decimal from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return Decimal(raw)
    except (InvalidOperation, TypeError):
        raise ValueError(
            f"Invalid decimal for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag (1/0, true/false, yes/no) from an env var."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class BookingConfig:
    """Request lifecycle and calendar settings."""

    request_expiry_hours: int = _safe_int("REQUEST_EXPIRY_HOURS", "72")
    disable_past_dates: bool = _safe_bool("DISABLE_PAST_DATES", "true")
    booking_number_attempts: int = _safe_int("BOOKING_NUMBER_ATTEMPTS", "5")
    ics_timezone: str = os.getenv("ICS_TIMEZONE", "Europe/Berlin")


@dataclass(frozen=True)
class PaymentConfig:
    """Default payment terms used when quoting a newly accepted booking."""

    platform_fee_percentage: Decimal = _safe_decimal("PLATFORM_FEE_PERCENTAGE", "10")
    deposit_percentage: Decimal = _safe_decimal("DEPOSIT_PERCENTAGE", "30")
    deposit_due_days: int = _safe_int("DEPOSIT_DUE_DAYS", "7")
    final_payment_days_before_event: int = _safe_int("FINAL_PAYMENT_DAYS_BEFORE_EVENT", "14")


@dataclass(frozen=True)
class DatabaseConfig:
    """SQLAlchemy connection settings."""

    url: str = os.getenv("DATABASE_URL", "sqlite:///booking_engine.db")
    echo: bool = _safe_bool("DATABASE_ECHO", "false")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    booking: BookingConfig = field(default_factory=BookingConfig)
    payments: PaymentConfig = field(default_factory=PaymentConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.booking.request_expiry_hours < 1:
        raise ValueError(
            f"REQUEST_EXPIRY_HOURS must be >= 1, got {config.booking.request_expiry_hours}"
        )
    if config.booking.booking_number_attempts < 1:
        raise ValueError(
            "BOOKING_NUMBER_ATTEMPTS must be >= 1, "
            f"got {config.booking.booking_number_attempts}"
        )

    for pct_name, pct_value in [
        ("PLATFORM_FEE_PERCENTAGE", config.payments.platform_fee_percentage),
        ("DEPOSIT_PERCENTAGE", config.payments.deposit_percentage),
    ]:
        if not Decimal("0") <= pct_value <= Decimal("100"):
            raise ValueError(f"{pct_name} must be between 0 and 100, got {pct_value}")

    if config.payments.deposit_due_days < 0:
        raise ValueError(
            f"DEPOSIT_DUE_DAYS must be >= 0, got {config.payments.deposit_due_days}"
        )
    if config.payments.final_payment_days_before_event < 0:
        raise ValueError(
            "FINAL_PAYMENT_DAYS_BEFORE_EVENT must be >= 0, "
            f"got {config.payments.final_payment_days_before_event}"
        )
    if not config.database.url:
        raise ValueError("DATABASE_URL must not be empty")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded (database: %s)", config.database.url.split("://")[0])
    return config


# Singleton instance
settings = load_config()
