"""Application settings loaded from ``SOUQ_``-prefixed environment variables."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SOUQ_", env_file=".env", extra="ignore")

    environment: str = Field("development", description="development, test, staging or production")
    log_level: str | None = Field(None, description="Overrides the per-environment default level")
    log_dir: str | None = Field(None, description="Write rotating log files here when set")

    default_currency: str = Field("EGP", min_length=3, max_length=3)
    order_number_prefix: str = "ORD"

    # Stock reservations held by an unpaid order are released after this long
    reservation_ttl_minutes: int = Field(15, ge=1)
    sweep_interval_seconds: float = Field(60.0, gt=0)
    cart_ttl_hours: int = Field(24, ge=1)

    default_commission_rate: Decimal = Field(Decimal("10.00"), ge=0, le=100)
    platform_fee_rate: Decimal = Field(Decimal("0.00"), ge=0, le=100)

    payment_adapter: str = "fake"
    carrier_adapter: str = "fake"
    tax_adapter: str = "fake"
    notifier_adapter: str = "fake"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
