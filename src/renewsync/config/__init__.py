"""Application configuration helpers."""

from __future__ import annotations

from .env import env_bool, env_float, env_int, env_str
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .renewal import RenewalConfig, get_renewal_config
from .storage import DatabaseConfig, get_database_config
from .stripe import StripeConfig, get_stripe_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "RateLimit",
    "RenewalConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StripeConfig",
    "configure_logging",
    "env_bool",
    "env_float",
    "env_int",
    "env_str",
    "get_database_config",
    "get_renewal_config",
    "get_stripe_config",
]
