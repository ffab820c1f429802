"""Per-record reconciliation against the billing provider."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from renewsync.domain.model import ReconciliationStatus, SubscriptionStatus
from renewsync.domain.ports.billing import BillingProviderError
from renewsync.domain.time_windows import utcnow

from .policy import DecisionReason, RenewalAction, RenewalPolicy, decide

if TYPE_CHECKING:
    from renewsync.domain.model import ExternalSnapshot, SubscriptionRecord
    from renewsync.domain.ports.billing import BillingProvider
    from renewsync.domain.time_windows import Clock

    from .context import RunContext
    from .policy import RenewalDecision

log = getLogger(__name__)


class ReconciliationEngine:
    """Decide and apply the renewal outcome for one candidate at a time.

    ``process`` returns the mutated record when it must be written, or ``None``
    when the record is left untouched. It never raises: unexpected failures are
    recorded on the record as an ERROR outcome so they survive the chunk.
    """

    def __init__(
        self,
        *,
        provider: BillingProvider,
        policy: RenewalPolicy | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.provider = provider
        self.policy = policy or RenewalPolicy()
        self._clock = clock

    def process(
        self, record: SubscriptionRecord, context: RunContext
    ) -> SubscriptionRecord | None:
        try:
            return self._process(record, context)
        except Exception as exc:
            log.exception(
                "Failed to reconcile subscription %s (tenant %s)", record.id, record.tenant_id
            )
            record.mark_reconciled(
                ReconciliationStatus.ERROR,
                at=self._clock(),
                error=str(exc) or type(exc).__name__,
            )
            return record

    def _process(
        self, record: SubscriptionRecord, context: RunContext
    ) -> SubscriptionRecord | None:
        snapshot = self._fetch_snapshot(record) if record.is_linked else None
        decision = decide(record.current_period_end, snapshot, self.policy, context.today)
        self._log_decision(record, snapshot, decision)

        if decision.action is RenewalAction.SKIP:
            return None

        now = self._clock()
        if decision.action is RenewalAction.MARK_PROCESSED:
            record.mark_reconciled(ReconciliationStatus.PROCESSED, at=now)
            record.updated_at = now
            return record

        if snapshot is None:
            raise RuntimeError("External values requested without a snapshot")
        changed = apply_snapshot(record, snapshot)
        record.last_external_sync_at = now
        record.updated_at = now
        record.mark_reconciled(
            ReconciliationStatus.UPDATED if changed else ReconciliationStatus.SYNCED,
            at=now,
        )
        if changed:
            log.info(
                "Subscription %s updated from provider: period %s..%s, status %s",
                record.id,
                record.current_period_start,
                record.current_period_end,
                record.status,
            )
        return record

    def _fetch_snapshot(self, record: SubscriptionRecord) -> ExternalSnapshot | None:
        external_id = record.external_subscription_id
        if external_id is None:
            return None
        try:
            return self.provider.fetch_subscription(
                tenant_id=record.tenant_id, external_id=external_id
            )
        except BillingProviderError as exc:
            log.warning(
                "Provider lookup failed for %s (tenant %s): %s; falling back to local dates",
                external_id,
                record.tenant_id,
                exc,
            )
            return None

    def _log_decision(
        self,
        record: SubscriptionRecord,
        snapshot: ExternalSnapshot | None,
        decision: RenewalDecision,
    ) -> None:
        external_end = snapshot.current_period_end if snapshot else None
        if decision.reason is DecisionReason.MISMATCH_SKIPPED:
            log.warning(
                "Date mismatch for subscription %s: local period_end %s, provider period_end %s "
                "(%s days apart). Skipping; the provider is the source of truth.",
                record.id,
                record.current_period_end,
                external_end,
                decision.day_delta,
            )
        elif decision.reason is DecisionReason.MISMATCH_FALLBACK:
            log.warning(
                "Date mismatch for subscription %s: local period_end %s, provider period_end %s "
                "(%s days apart). Local fallback enabled; processing with provider values.",
                record.id,
                record.current_period_end,
                external_end,
                decision.day_delta,
            )
        else:
            log.debug(
                "Subscription %s: local period_end %s, provider period_end %s, cutoff %s -> %s",
                record.id,
                record.current_period_end,
                external_end,
                decision.cutoff,
                decision.reason,
            )


def apply_snapshot(record: SubscriptionRecord, snapshot: ExternalSnapshot) -> bool:
    """Copy the provider's state onto ``record``; return whether any field changed."""

    changed = record.set_period(snapshot.current_period_start, snapshot.current_period_end)
    if record.status != snapshot.status:
        record.status = snapshot.status
        changed = True
    if record.cancel_at_period_end != snapshot.cancel_at_period_end:
        record.cancel_at_period_end = snapshot.cancel_at_period_end
        changed = True
    # cancelled_at only follows a confirmed termination
    if (
        snapshot.status is SubscriptionStatus.CANCELLED
        and snapshot.cancelled_at is not None
        and record.cancelled_at != snapshot.cancelled_at
    ):
        record.cancelled_at = snapshot.cancelled_at
        changed = True
    return changed
