"""Stripe billing provider configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_str
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

STRIPE_BASE_URL = "https://api.stripe.com/v1/"
STRIPE_TIMEOUT_SECONDS = 10.0
STRIPE_PROVIDER_NAME = "STRIPE"


@dataclass(frozen=True, slots=True)
class StripeConfig:
    """Holds Stripe API configuration shared by every tenant.

    Credentials are per tenant and resolved at call time, so they are not part of
    this object.
    """

    resilience: ResilienceConfig
    provider_name: str = STRIPE_PROVIDER_NAME


def get_stripe_config(*, resilience: ResilienceConfig | None = None) -> StripeConfig:
    base_url = env_str("STRIPE_API_BASE_URL", STRIPE_BASE_URL)
    timeout = env_float("STRIPE_TIMEOUT_SECONDS", STRIPE_TIMEOUT_SECONDS, minimum=0.1)
    return StripeConfig(
        resilience=resilience
        or ResilienceConfig(
            name="stripe",
            base_url=base_url,
            timeout_seconds=timeout,
            retry=RetryPolicy(total=2),
            ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
        ),
    )
