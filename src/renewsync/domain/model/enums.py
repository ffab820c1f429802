"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SubscriptionStatus(StrEnum):
    ACTIVE = "ACTIVE"
    TRIAL = "TRIAL"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"


class ReconciliationStatus(StrEnum):
    """Outcome of the most recent reconciliation attempt for a subscription."""

    PENDING = "PENDING"
    SYNCED = "SYNCED"
    UPDATED = "UPDATED"
    PROCESSED = "PROCESSED"
    ERROR = "ERROR"


class ExecutionStatus(StrEnum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TriggerSource(StrEnum):
    API = "API"
    SCHEDULED = "SCHEDULED"
    MANUAL = "MANUAL"


# Statuses the windowed scan considers renewable.
RENEWABLE_STATUSES: frozenset[SubscriptionStatus] = frozenset(
    {SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL}
)
