"""
Kiosk configuration.

Everything that used to be hard-wired on the device (API credential, billing
profile, test trigger amount, polling cadence) is read from the environment
(prefix ``KIOSK_``) or a ``.env`` file. Processes call ``get_settings()`` once
and pass the values they need downward; workflow code never reads settings
directly because it must stay deterministic.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from qrph_kiosk.domain.models import BillingAddress, BillingProfile


class KioskSettings(BaseSettings):
    """Typed view of the kiosk's runtime configuration."""

    # PayMongo
    paymongo_secret_key: str = Field(default="", description="Secret key (sk_test_... / sk_live_...)")
    paymongo_base_url: str = "https://api.paymongo.com/v1"
    currency: str = "PHP"
    payment_rail: str = "qrph"
    capture_type: str = "automatic"
    http_timeout_seconds: float = 10.0
    # Certificate validation stays on unless someone explicitly opts out.
    verify_tls: bool = True

    # Billing profile attached to every payment method
    billing_name: str = "Storage Customer"
    billing_email: str = "customer@example.com"
    billing_phone: str = "09171234567"
    billing_line1: str = "123 Quezon Ave"
    billing_city: str = "Quezon City"
    billing_country: str = "PH"

    # Flow timing
    poll_interval_seconds: float = Field(default=3.0, gt=0)
    poll_deadline_seconds: float = Field(default=180.0, gt=0)
    parallel_setup: bool = False

    # Temporal. One kiosk runs one payment workflow at a time, under a fixed id.
    kiosk_id: str = Field(default="kiosk-1", min_length=1)
    temporal_address: str = "localhost:7233"
    temporal_namespace: str = "default"
    task_queue: str = "kiosk-payments"
    activity_timeout_seconds: float = 15.0

    # Triggers
    trigger_amount: int | None = Field(default=None, ge=1, description="Amount enqueued once at startup")
    read_stdin: bool = True

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="KIOSK_", env_file=".env", extra="ignore")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @property
    def workflow_id(self) -> str:
        return f"payment-{self.kiosk_id}"

    @property
    def billing_profile(self) -> BillingProfile:
        return BillingProfile(
            name=self.billing_name,
            email=self.billing_email,
            phone=self.billing_phone,
            address=BillingAddress(
                line1=self.billing_line1,
                city=self.billing_city,
                country=self.billing_country,
            ),
        )


@lru_cache()
def get_settings() -> KioskSettings:
    """Load settings once per process."""
    return KioskSettings()
