from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from renewsync.domain.model import ReconciliationStatus, SubscriptionStatus
from renewsync.domain.ports import ProviderConfigurationMissingError, ProviderUnavailableError
from renewsync.domain.renewal import ReconciliationEngine, RenewalPolicy, RunContext
from tests.helpers.subscriptions import (
    NOW,
    TODAY,
    FakeBillingProvider,
    days,
    fixed_clock,
    make_snapshot,
    make_subscription,
)

if TYPE_CHECKING:
    from renewsync.domain.model import SubscriptionRecord

CONTEXT = RunContext(today=TODAY, tenant_id="tenant-1")


def _engine(
    provider: FakeBillingProvider,
    *,
    allow_local_fallback: bool = False,
) -> ReconciliationEngine:
    return ReconciliationEngine(
        provider=provider,
        policy=RenewalPolicy(horizon_days=7, allow_local_fallback=allow_local_fallback),
        clock=fixed_clock(),
    )


def _state(record: SubscriptionRecord) -> dict[str, object]:
    return dict(vars(record))


def test_linked_record_due_on_both_sides_is_synced() -> None:
    record = make_subscription(end_in_days=3, record_id=1)
    provider = FakeBillingProvider({"sub_1": make_snapshot(end_in_days=3)})

    result = _engine(provider).process(record, CONTEXT)

    assert result is record
    assert record.reconciliation_status is ReconciliationStatus.SYNCED
    assert record.last_external_sync_at == NOW
    assert record.last_reconciled_at == NOW
    assert record.reconciliation_error is None
    assert provider.calls == [("tenant-1", "sub_1")]


def test_external_values_overwrite_stale_local_period() -> None:
    record = make_subscription(end_in_days=30, record_id=1)
    snapshot = make_snapshot(end_in_days=5, period_days=31)
    provider = FakeBillingProvider({"sub_1": snapshot})

    result = _engine(provider).process(record, CONTEXT)

    assert result is record
    assert record.reconciliation_status is ReconciliationStatus.UPDATED
    assert record.current_period_start == snapshot.current_period_start
    assert record.current_period_end == snapshot.current_period_end


def test_reprocessing_after_update_is_idempotent() -> None:
    record = make_subscription(end_in_days=30, record_id=1)
    provider = FakeBillingProvider({"sub_1": make_snapshot(end_in_days=5)})
    engine = _engine(provider)

    engine.process(record, CONTEXT)
    period = (record.current_period_start, record.current_period_end, record.status)
    engine.process(record, CONTEXT)

    assert record.reconciliation_status is ReconciliationStatus.SYNCED
    assert (record.current_period_start, record.current_period_end, record.status) == period


def test_mismatch_without_fallback_leaves_record_untouched(
    caplog: pytest.LogCaptureFixture,
) -> None:
    record = make_subscription(end_in_days=2, record_id=2, external_id="sub_2")
    provider = FakeBillingProvider({"sub_2": make_snapshot(end_in_days=26, external_id="sub_2")})
    before = _state(record)

    with caplog.at_level(logging.WARNING):
        result = _engine(provider).process(record, CONTEXT)

    assert result is None
    assert _state(record) == before
    assert any("mismatch" in message.lower() for message in caplog.messages)
    assert any("24 days" in message for message in caplog.messages)


def test_mismatch_with_fallback_persists_external_values() -> None:
    record = make_subscription(end_in_days=2, record_id=2, external_id="sub_2")
    snapshot = make_snapshot(end_in_days=26, external_id="sub_2")
    provider = FakeBillingProvider({"sub_2": snapshot})

    result = _engine(provider, allow_local_fallback=True).process(record, CONTEXT)

    assert result is record
    assert record.current_period_end == days(26)
    assert record.current_period_end == snapshot.current_period_end
    assert record.reconciliation_status is ReconciliationStatus.UPDATED


def test_neither_side_due_is_skipped_without_mutation() -> None:
    record = make_subscription(end_in_days=20, record_id=1)
    provider = FakeBillingProvider({"sub_1": make_snapshot(end_in_days=25)})
    before = _state(record)

    assert _engine(provider).process(record, CONTEXT) is None
    assert _state(record) == before


@pytest.mark.parametrize(("offset", "processed"), [(7, True), (-1, True), (8, False), (10, False)])
def test_unlinked_record_processed_iff_inside_window(offset: int, processed: bool) -> None:  # noqa: FBT001
    record = make_subscription(end_in_days=offset, record_id=3, external_id=None)
    provider = FakeBillingProvider()
    before = _state(record)

    result = _engine(provider).process(record, CONTEXT)

    assert provider.calls == []
    if processed:
        assert result is record
        assert record.reconciliation_status is ReconciliationStatus.PROCESSED
        assert record.last_reconciled_at == NOW
        assert record.last_external_sync_at is None
    else:
        assert result is None
        assert _state(record) == before


@pytest.mark.parametrize(
    "error",
    [
        ProviderUnavailableError("stripe down"),
        ProviderConfigurationMissingError("no secret"),
    ],
)
def test_provider_failure_falls_back_to_local_dates(error: Exception) -> None:
    due = make_subscription(end_in_days=4, record_id=1, external_id="sub_due")
    not_due = make_subscription(end_in_days=12, record_id=2, external_id="sub_later")
    provider = FakeBillingProvider({"sub_due": error, "sub_later": error})
    engine = _engine(provider)

    assert engine.process(due, CONTEXT) is due
    assert due.reconciliation_status is ReconciliationStatus.PROCESSED
    assert due.reconciliation_error is None
    assert engine.process(not_due, CONTEXT) is None
    assert not_due.reconciliation_status is ReconciliationStatus.PENDING


def test_unexpected_failure_marks_record_as_error() -> None:
    record = make_subscription(end_in_days=3, record_id=1)
    provider = FakeBillingProvider({"sub_1": RuntimeError("boom")})

    result = _engine(provider).process(record, CONTEXT)

    assert result is record
    assert record.reconciliation_status is ReconciliationStatus.ERROR
    assert record.reconciliation_error == "boom"
    assert record.last_reconciled_at == NOW


def test_inverted_external_period_is_an_error_and_keeps_local_period() -> None:
    record = make_subscription(end_in_days=3, record_id=1)
    snapshot = replace(make_snapshot(end_in_days=3), current_period_start=days(10))
    provider = FakeBillingProvider({"sub_1": snapshot})
    period = (record.current_period_start, record.current_period_end)

    result = _engine(provider).process(record, CONTEXT)

    assert result is record
    assert record.reconciliation_status is ReconciliationStatus.ERROR
    assert (record.current_period_start, record.current_period_end) == period


def test_external_status_and_cancellation_are_mirrored() -> None:
    cancelled_at = datetime(2025, 3, 9, 8, 30, tzinfo=UTC)
    record = make_subscription(end_in_days=3, record_id=1)
    snapshot = make_snapshot(
        end_in_days=3,
        status=SubscriptionStatus.CANCELLED,
        cancel_at_period_end=True,
        cancelled_at=cancelled_at,
    )

    _engine(FakeBillingProvider({"sub_1": snapshot})).process(record, CONTEXT)

    assert record.status is SubscriptionStatus.CANCELLED
    assert record.cancel_at_period_end is True
    assert record.cancelled_at == cancelled_at
    assert record.reconciliation_status is ReconciliationStatus.UPDATED


def test_cancelled_at_ignored_unless_external_status_is_cancelled() -> None:
    record = make_subscription(end_in_days=3, record_id=1)
    snapshot = make_snapshot(
        end_in_days=3,
        status=SubscriptionStatus.ACTIVE,
        cancelled_at=datetime(2025, 3, 9, tzinfo=UTC),
    )

    _engine(FakeBillingProvider({"sub_1": snapshot})).process(record, CONTEXT)

    assert record.cancelled_at is None
    assert record.reconciliation_status is ReconciliationStatus.SYNCED
