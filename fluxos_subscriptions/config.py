"""
Stripe client configuration.

Immutable configuration threaded through every Stripe call.
"""

from dataclasses import dataclass

from .exceptions import StripeConfigError

DEFAULT_WEBHOOK_TOLERANCE = 300


@dataclass(frozen=True)
class StripeConfig:
    """Configuration for Stripe client.

    Args:
        api_key: Stripe secret key (sk_live_* or sk_test_*)
        webhook_secret: Webhook signing secret for signature verification
        publishable_key: Publishable key handed to the payer-facing client
        timeout: Per-call deadline in seconds
        webhook_tolerance: Maximum age in seconds of a signed webhook timestamp
    """

    api_key: str
    webhook_secret: str | None = None
    publishable_key: str | None = None
    timeout: float = 30.0
    webhook_tolerance: int = DEFAULT_WEBHOOK_TOLERANCE

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.api_key:
            raise StripeConfigError("api_key is required")

        if not self.api_key.startswith(("sk_live_", "sk_test_", "rk_live_", "rk_test_")):
            raise StripeConfigError(
                "api_key must be a valid Stripe secret key (sk_*) or restricted key (rk_*)"
            )

        if self.publishable_key and not self.publishable_key.startswith("pk_"):
            raise StripeConfigError("publishable_key must be a Stripe publishable key (pk_*)")

        if self.timeout <= 0:
            raise StripeConfigError("timeout must be positive")

        if self.webhook_tolerance <= 0:
            raise StripeConfigError("webhook_tolerance must be positive")

    @property
    def is_test_mode(self) -> bool:
        """Check if using test mode API key."""
        return "_test_" in self.api_key

    @property
    def is_live_mode(self) -> bool:
        """Check if using live mode API key."""
        return "_live_" in self.api_key
