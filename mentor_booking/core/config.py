import os
from dataclasses import dataclass
from functools import lru_cache

# PostgreSQL settings
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
POSTGRES_DB = os.getenv("POSTGRES_DB", "mentor_booking")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "db")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
DEBUG = ENVIRONMENT in ["development", "dev"]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if not DEBUG else "text")

# Application
APP_NAME = os.getenv("APP_NAME", "Mentor Booking API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

# CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Booking
RESERVATION_HOLD_MINUTES = int(os.getenv("RESERVATION_HOLD_MINUTES", "20"))
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "30"))
MIN_SESSION_MINUTES = int(os.getenv("MIN_SESSION_MINUTES", "30"))
MAX_SESSION_MINUTES = int(os.getenv("MAX_SESSION_MINUTES", "240"))
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Asia/Calcutta")

# Payment gateway
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")
RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1")
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", "")
GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10.0"))
GATEWAY_RETRY_ATTEMPTS = int(os.getenv("GATEWAY_RETRY_ATTEMPTS", "3"))

# Rate limiting
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ["1", "true", "yes"]
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "120/minute")
RATE_LIMIT_BOOKING = os.getenv("RATE_LIMIT_BOOKING", "10/minute")

# Maintenance
CLEANUP_API_SECRET = os.getenv("CLEANUP_API_SECRET", "")
REAPER_INTERVAL_SECONDS = int(os.getenv("REAPER_INTERVAL_SECONDS", "300"))


@dataclass(frozen=True)
class BookingConfig:
    """
    Tunables shared by the slot generator, the ledger, the reaper and the
    payment reconciler.

    Attributes:
        hold_minutes: How long a RESERVED session blocks its interval
        slot_step_minutes: Size of a generated slot
        min_duration_minutes / max_duration_minutes: Allowed booking length
        default_timezone: IANA zone used when a mentor does not give one
        currency: Currency of orders sent to the payment gateway
    """

    hold_minutes: int = 20
    slot_step_minutes: int = 30
    min_duration_minutes: int = 30
    max_duration_minutes: int = 240
    default_timezone: str = "Asia/Calcutta"
    currency: str = "INR"

    def __post_init__(self):
        if self.hold_minutes < 1:
            raise ValueError(f"hold_minutes must be >= 1, got {self.hold_minutes}")
        if self.slot_step_minutes < 1 or 1440 % self.slot_step_minutes:
            raise ValueError(
                f"slot_step_minutes must divide a day evenly, got {self.slot_step_minutes}"
            )
        if self.min_duration_minutes > self.max_duration_minutes:
            raise ValueError("min_duration_minutes must not exceed max_duration_minutes")


@lru_cache
def get_booking_config() -> BookingConfig:
    """Booking configuration built from the environment (singleton)."""
    return BookingConfig(
        hold_minutes=RESERVATION_HOLD_MINUTES,
        slot_step_minutes=SLOT_STEP_MINUTES,
        min_duration_minutes=MIN_SESSION_MINUTES,
        max_duration_minutes=MAX_SESSION_MINUTES,
        default_timezone=DEFAULT_TIMEZONE,
        currency=PAYMENT_CURRENCY,
    )


# Validation of critical settings
def validate_config():
    """Validate configuration at startup"""
    errors = []

    if not DATABASE_URL:
        errors.append("DATABASE_URL is required")

    if RESERVATION_HOLD_MINUTES < 1:
        errors.append("RESERVATION_HOLD_MINUTES must be >= 1")

    if SLOT_STEP_MINUTES < 1 or 1440 % SLOT_STEP_MINUTES:
        errors.append("SLOT_STEP_MINUTES must divide 1440")

    if MIN_SESSION_MINUTES > MAX_SESSION_MINUTES:
        errors.append("MIN_SESSION_MINUTES must not exceed MAX_SESSION_MINUTES")

    if REAPER_INTERVAL_SECONDS < 0:
        errors.append("REAPER_INTERVAL_SECONDS must be >= 0")

    if not DEBUG:
        if not RAZORPAY_KEY_ID or not RAZORPAY_KEY_SECRET:
            errors.append("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET are required")
        if not RAZORPAY_WEBHOOK_SECRET:
            errors.append("RAZORPAY_WEBHOOK_SECRET is required")

    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")
