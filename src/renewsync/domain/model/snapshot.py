"""Transient projection of the billing provider's view of a subscription."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date, datetime

    from renewsync.domain.model.enums import SubscriptionStatus


@dataclass(frozen=True, slots=True)
class ExternalSnapshot:
    """Live provider state; never persisted, only applied to a SubscriptionRecord."""

    external_id: str
    status: SubscriptionStatus
    current_period_start: date
    current_period_end: date
    cancel_at_period_end: bool = False
    cancelled_at: datetime | None = None
