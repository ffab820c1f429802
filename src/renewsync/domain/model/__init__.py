"""Domain model for the subscription renewal mirror."""

from __future__ import annotations

from .enums import (
    RENEWABLE_STATUSES,
    ExecutionStatus,
    ReconciliationStatus,
    SubscriptionStatus,
    TriggerSource,
)
from .execution import ExecutionAlreadyCompletedError, ExecutionRecord
from .snapshot import ExternalSnapshot
from .subscription import InvalidPeriodError, SubscriptionRecord

__all__ = [
    "RENEWABLE_STATUSES",
    "ExecutionAlreadyCompletedError",
    "ExecutionRecord",
    "ExecutionStatus",
    "ExternalSnapshot",
    "InvalidPeriodError",
    "ReconciliationStatus",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "TriggerSource",
]
