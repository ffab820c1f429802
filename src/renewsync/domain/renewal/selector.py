"""Candidate selection for a renewal run."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from renewsync.domain.time_windows import RenewalWindow

if TYPE_CHECKING:
    from collections.abc import Iterator

    from renewsync.domain.model import SubscriptionRecord
    from renewsync.domain.ports import SubscriptionRepository

    from .context import RunContext

log = getLogger(__name__)


def select_candidates(
    repository: SubscriptionRepository,
    context: RunContext,
    *,
    horizon_days: int,
) -> Iterator[SubscriptionRecord]:
    """Yield the subscriptions a run should evaluate.

    A named external id bypasses every filter and yields at most that record,
    even when it is outside the window or not renewable. Otherwise the scan is
    limited to renewable records whose period ends on or before the cutoff, in
    ascending period-end order and capped at ``context.max_records``. Without a
    tenant the scan spans all tenants.
    """

    if context.is_bypass:
        external_id = context.external_subscription_id or ""
        record = repository.get_by_external_id(external_id, tenant_id=context.tenant_id)
        if record is None:
            log.warning(
                "Subscription %s not found%s; nothing to process",
                external_id,
                f" for tenant {context.tenant_id}" if context.tenant_id else "",
            )
            return
        log.info("Processing single subscription %s (filters bypassed)", external_id)
        yield record
        return

    cutoff = RenewalWindow(horizon_days).cutoff(context.today)
    if context.tenant_id is None:
        log.warning("No tenant given; scanning renewal candidates across all tenants")
    candidates = repository.find_renewal_candidates(
        tenant_id=context.tenant_id,
        period_end_cutoff=cutoff,
        limit=context.max_records,
    )
    log.info(
        "Selected %d renewal candidate(s) for tenant %s ending on or before %s",
        len(candidates),
        context.tenant_id or "*",
        cutoff,
    )
    yield from candidates
