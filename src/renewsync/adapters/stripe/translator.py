"""Translate Stripe payloads into domain snapshots."""

from __future__ import annotations

from datetime import UTC, date, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from renewsync.domain.model import ExternalSnapshot, SubscriptionStatus

if TYPE_CHECKING:
    from .schema import StripeSubscription

log = getLogger(__name__)

_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIAL,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELLED,
    "cancelled": SubscriptionStatus.CANCELLED,
    "unpaid": SubscriptionStatus.SUSPENDED,
    "incomplete": SubscriptionStatus.EXPIRED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}


def map_provider_status(value: str | None) -> SubscriptionStatus:
    """Map a Stripe status string onto the local status; unknown values count as active."""

    if not value:
        return SubscriptionStatus.ACTIVE
    status = _STATUS_MAP.get(value.strip().lower())
    if status is None:
        log.debug("Unknown Stripe subscription status %r; treating as ACTIVE", value)
        return SubscriptionStatus.ACTIVE
    return status


def epoch_to_date(value: int) -> date:
    return datetime.fromtimestamp(value, tz=UTC).date()


def to_snapshot(payload: StripeSubscription) -> ExternalSnapshot:
    return ExternalSnapshot(
        external_id=payload.id,
        status=map_provider_status(payload.status),
        current_period_start=epoch_to_date(payload.current_period_start),
        current_period_end=epoch_to_date(payload.current_period_end),
        cancel_at_period_end=payload.cancel_at_period_end,
        cancelled_at=(
            datetime.fromtimestamp(payload.canceled_at, tz=UTC)
            if payload.canceled_at is not None
            else None
        ),
    )
