"""Application settings for the subscription service"""

from functools import lru_cache
from typing import Dict, List

from pydantic_settings import BaseSettings

from .config import DEFAULT_WEBHOOK_TOLERANCE, StripeConfig
from .exceptions import StripeValidationError


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_TIMEOUT: float = 30.0
    STRIPE_WEBHOOK_TOLERANCE: int = DEFAULT_WEBHOOK_TOLERANCE

    # Prices shown on the config endpoint
    PRICE_LOOKUP_KEYS: str = "sample_basic,sample_premium"
    # Logical price name -> Stripe price ID, as JSON: {"basic": "price_..."}
    PRICE_IDS: Dict[str, str] = {}

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Session cookie carrying the Stripe customer ID
    CUSTOMER_COOKIE_NAME: str = "customer"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def price_lookup_keys_list(self) -> List[str]:
        """Parse price lookup keys from comma-separated string"""
        return [key.strip() for key in self.PRICE_LOOKUP_KEYS.split(",") if key.strip()]

    def resolve_price_id(self, price_name: str) -> str:
        """Map a logical price name (case-insensitive) to its Stripe price ID."""
        prices = {name.lower(): price_id for name, price_id in self.PRICE_IDS.items()}
        price_id = prices.get(price_name.strip().lower())
        if not price_id:
            raise StripeValidationError(
                f"Unknown price: {price_name}",
                details={"price": price_name, "known_prices": sorted(prices)},
            )
        return price_id

    def stripe_config(self) -> StripeConfig:
        """Build the immutable Stripe configuration."""
        return StripeConfig(
            api_key=self.STRIPE_SECRET_KEY,
            webhook_secret=self.STRIPE_WEBHOOK_SECRET or None,
            publishable_key=self.STRIPE_PUBLISHABLE_KEY or None,
            timeout=self.STRIPE_TIMEOUT,
            webhook_tolerance=self.STRIPE_WEBHOOK_TOLERANCE,
        )

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()
