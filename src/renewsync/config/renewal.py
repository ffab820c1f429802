"""Renewal reconciliation job settings."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float, env_int, env_str

DEFAULT_HORIZON_DAYS = 7
DEFAULT_CHUNK_SIZE = 100
DEFAULT_MAX_RECORDS = 10_000
DEFAULT_TENANT_DELAY_SECONDS = 1.0
DEFAULT_STALE_RUN_HOURS = 6.0
DEFAULT_SCHEDULE_CRON = "0 0 */6 * * *"


@dataclass(frozen=True, slots=True)
class RenewalConfig:
    """Tunables for the subscription renewal pipeline.

    ``allow_local_fallback`` lets a local period end inside the renewal window
    trigger processing even when the billing provider disagrees. It exists for
    test environments with skewed dates and must stay off in production.
    """

    horizon_days: int = DEFAULT_HORIZON_DAYS
    allow_local_fallback: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_records: int = DEFAULT_MAX_RECORDS
    tenant_delay_seconds: float = DEFAULT_TENANT_DELAY_SECONDS
    stale_run_hours: float = DEFAULT_STALE_RUN_HOURS
    schedule_enabled: bool = True
    schedule_cron: str = DEFAULT_SCHEDULE_CRON


def get_renewal_config() -> RenewalConfig:
    return RenewalConfig(
        horizon_days=env_int("RENEWAL_HORIZON_DAYS", DEFAULT_HORIZON_DAYS, minimum=0),
        allow_local_fallback=env_bool("RENEWAL_ALLOW_LOCAL_FALLBACK", default=False),
        chunk_size=env_int("RENEWAL_CHUNK_SIZE", DEFAULT_CHUNK_SIZE, minimum=1),
        max_records=env_int("RENEWAL_MAX_RECORDS", DEFAULT_MAX_RECORDS, minimum=1),
        tenant_delay_seconds=env_float(
            "RENEWAL_TENANT_DELAY_SECONDS", DEFAULT_TENANT_DELAY_SECONDS, minimum=0.0
        ),
        stale_run_hours=env_float("RENEWAL_STALE_RUN_HOURS", DEFAULT_STALE_RUN_HOURS, minimum=0.0),
        schedule_enabled=env_bool("RENEWAL_SCHEDULE_ENABLED", default=True),
        schedule_cron=env_str("RENEWAL_SCHEDULE_CRON", DEFAULT_SCHEDULE_CRON),
    )
