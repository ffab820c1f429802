"""Conflict resolution between the local mirror and the billing provider.

``decide`` is pure: its result depends only on the local period end, the live
snapshot (if one was fetched), the policy and today's date. The engine is the
only caller that acts on the decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from renewsync.domain.time_windows import RenewalWindow

if TYPE_CHECKING:
    from datetime import date

    from renewsync.domain.model import ExternalSnapshot


@dataclass(frozen=True, slots=True)
class RenewalPolicy:
    horizon_days: int = 7
    allow_local_fallback: bool = False

    @property
    def window(self) -> RenewalWindow:
        return RenewalWindow(self.horizon_days)


class RenewalAction(StrEnum):
    SKIP = "skip"
    MARK_PROCESSED = "mark_processed"
    APPLY_EXTERNAL = "apply_external"


class DecisionReason(StrEnum):
    LOCAL_DUE = "local_due"
    LOCAL_NOT_DUE = "local_not_due"
    EXTERNAL_DUE = "external_due"
    NEITHER_DUE = "neither_due"
    MISMATCH_SKIPPED = "mismatch_skipped"
    MISMATCH_FALLBACK = "mismatch_fallback"


@dataclass(frozen=True, slots=True)
class RenewalDecision:
    action: RenewalAction
    reason: DecisionReason
    cutoff: date
    day_delta: int | None = None
    """Days from the local period end to the external one, for mismatches."""

    @property
    def is_mismatch(self) -> bool:
        return self.reason in {DecisionReason.MISMATCH_SKIPPED, DecisionReason.MISMATCH_FALLBACK}


def decide(
    local_end: date | None,
    snapshot: ExternalSnapshot | None,
    policy: RenewalPolicy,
    today: date,
) -> RenewalDecision:
    """Decide what a reconciliation run should do with one subscription.

    ``snapshot`` is ``None`` when the record has no provider link or the live
    fetch failed; the local date then decides alone. With a snapshot, the
    provider's period end is authoritative. A local date inside the window only
    wins a disagreement when the policy allows the local fallback, and even then
    the provider's values are the ones applied.
    """

    window = policy.window
    cutoff = window.cutoff(today)
    local_due = window.contains(local_end, today=today)

    if snapshot is None:
        if local_due:
            return RenewalDecision(RenewalAction.MARK_PROCESSED, DecisionReason.LOCAL_DUE, cutoff)
        return RenewalDecision(RenewalAction.SKIP, DecisionReason.LOCAL_NOT_DUE, cutoff)

    if window.contains(snapshot.current_period_end, today=today):
        return RenewalDecision(RenewalAction.APPLY_EXTERNAL, DecisionReason.EXTERNAL_DUE, cutoff)

    if not local_due or local_end is None:
        return RenewalDecision(RenewalAction.SKIP, DecisionReason.NEITHER_DUE, cutoff)

    delta = (snapshot.current_period_end - local_end).days
    if policy.allow_local_fallback:
        return RenewalDecision(
            RenewalAction.APPLY_EXTERNAL, DecisionReason.MISMATCH_FALLBACK, cutoff, delta
        )
    return RenewalDecision(RenewalAction.SKIP, DecisionReason.MISMATCH_SKIPPED, cutoff, delta)
