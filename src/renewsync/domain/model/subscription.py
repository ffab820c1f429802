"""Local mirror of a billing-provider subscription."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from renewsync.domain.model.enums import ReconciliationStatus, SubscriptionStatus

if TYPE_CHECKING:
    from datetime import date, datetime


class InvalidPeriodError(ValueError):
    """Raised when a billing period would end before it starts."""


@dataclass(eq=False, kw_only=True)
class SubscriptionRecord:
    """Subscription row mirrored from the billing provider.

    ``id`` stays ``None`` until the record is first saved; the persistence layer
    draws it from the shared identifier counter.
    """

    tenant_id: str
    current_period_start: date
    current_period_end: date
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    id: int | None = None
    external_subscription_id: str | None = None
    external_customer_id: str | None = None
    trial_start: date | None = None
    trial_end: date | None = None
    cancel_at_period_end: bool = False
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    last_reconciled_at: datetime | None = None
    last_external_sync_at: datetime | None = None
    reconciliation_status: ReconciliationStatus = ReconciliationStatus.PENDING
    reconciliation_error: str | None = None

    def __post_init__(self) -> None:
        _check_period(self.current_period_start, self.current_period_end)

    @property
    def is_linked(self) -> bool:
        return bool(self.external_subscription_id)

    def set_period(self, start: date, end: date) -> bool:
        """Replace the billing period, returning whether anything changed."""

        _check_period(start, end)
        changed = (start, end) != (self.current_period_start, self.current_period_end)
        self.current_period_start = start
        self.current_period_end = end
        return changed

    def mark_reconciled(
        self,
        status: ReconciliationStatus,
        *,
        at: datetime,
        error: str | None = None,
    ) -> None:
        """Overwrite the reconciliation outcome; earlier outcomes are not kept."""

        self.reconciliation_status = status
        self.reconciliation_error = error
        self.last_reconciled_at = at


def _check_period(start: date, end: date) -> None:
    if end < start:
        raise InvalidPeriodError(f"Billing period ends ({end}) before it starts ({start})")
