"""Application configuration."""
from decimal import Decimal
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "DOOH Platform"
    debug: bool = False

    # Database
    database_url: str

    # Redis
    redis_url: str

    # CORS
    frontend_url: str = "http://localhost:3000"

    # Pricing
    base_unit_rate: Decimal = Decimal("0.001")  # revenue per impression, before commission
    default_commission_rate: Decimal = Decimal("0.30")

    # Payouts
    minimum_payout_threshold: Decimal = Decimal("50")
    payout_rate_limit_requests: int = 5
    payout_rate_limit_window: int = 3600  # seconds (1 hour)

    # Earnings summary cache
    earnings_cache_ttl: int = 120  # seconds

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
