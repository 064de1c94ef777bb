"""
Subscription billing exceptions.

Standalone exception hierarchy for the fluxos-subscriptions package.
Webhook authentication, caller validation and provider failures are kept
apart so that routes can map each one to its own response.
"""

from typing import Any


class StripeError(Exception):
    """Base exception for all Stripe-related errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, details={self.details})"


class StripeConfigError(StripeError):
    """Invalid configuration provided."""

    pass


class StripeWebhookError(StripeError):
    """Webhook payload could not be authenticated.

    Raised before any field of the payload is trusted. The webhook route
    answers with 400 so that Stripe's redelivery policy applies.
    """

    pass


class StripeValidationError(StripeError):
    """Caller-supplied state is insufficient for the operation."""

    pass


class StripeBillingError(StripeError):
    """Stripe API failure or a missing field Stripe was expected to return.

    Args:
        retryable: True when the failure is transient and the caller may
            repeat the request unchanged.
    """

    default_retryable = False

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message, details=details, original_error=original_error)
        self.retryable = self.default_retryable if retryable is None else retryable

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retryable"] = self.retryable
        return data


class StripeCustomerError(StripeBillingError):
    """Customer operation failed (create, get)."""

    pass


class StripePaymentError(StripeBillingError):
    """Payment intent or price operation failed."""

    pass


class StripeSubscriptionError(StripeBillingError):
    """Subscription operation failed (create, cancel, update)."""

    pass


class StripeInvoiceError(StripeBillingError):
    """Invoice retrieval or preview failed."""

    pass


class StripeConnectionError(StripeBillingError):
    """Unable to reach the Stripe API within the configured deadline."""

    default_retryable = True


class ClientSecretUnavailableError(StripeInvoiceError):
    """Latest invoice has no confirmation secret yet."""

    default_retryable = True


class ResolutionMiss(StripeError):
    """Payment intent, payment method or subscription could not be determined.

    Soft failure: the reconciliation engine logs it and still acknowledges
    the event.
    """

    pass
