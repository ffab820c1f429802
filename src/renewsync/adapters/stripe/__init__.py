"""Public interface for the Stripe adapter."""

from __future__ import annotations

from .client import StripeAPIError, StripeBillingProvider
from .schema import StripeErrorResponse, StripeSubscription
from .translator import map_provider_status, to_snapshot

__all__ = [
    "StripeAPIError",
    "StripeBillingProvider",
    "StripeErrorResponse",
    "StripeSubscription",
    "map_provider_status",
    "to_snapshot",
]
