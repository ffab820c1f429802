"""Tenant-by-tenant orchestration of the renewal pipeline."""

from __future__ import annotations

import time
from logging import getLogger
from typing import TYPE_CHECKING

from renewsync.domain.model import ReconciliationStatus

from .context import PipelineCounts, RunSummary
from .selector import select_candidates
from .writer import ChunkWriter

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence

    from renewsync.domain.model import SubscriptionRecord
    from renewsync.domain.ports import TenantRegistry
    from renewsync.domain.ports.unit_of_work import RenewalUnitOfWork

    from .context import RunContext
    from .engine import ReconciliationEngine

log = getLogger(__name__)

DEFAULT_TENANT_DELAY_SECONDS = 1.0


class TenantOrchestrator:
    """Run selector, engine and writer once per tenant.

    A failing tenant is logged and counted; the remaining tenants still run.
    Consecutive tenant runs are separated by ``delay_seconds`` to limit the load
    placed on the billing provider.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], RenewalUnitOfWork],
        engine: ReconciliationEngine,
        registry: TenantRegistry,
        delay_seconds: float = DEFAULT_TENANT_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self.engine = engine
        self.registry = registry
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def run(self, context: RunContext) -> RunSummary:
        try:
            return self._run(context)
        finally:
            self.engine.provider.close()

    def _run(self, context: RunContext) -> RunSummary:
        summary = RunSummary()

        if context.tenant_id is not None or context.is_bypass:
            self._run_isolated(context, summary)
            return summary

        tenant_ids = list(self.registry.tenant_ids())
        log.info("Running subscription renewal for %d tenant(s)", len(tenant_ids))
        for index, tenant_id in enumerate(tenant_ids):
            if index > 0 and self.delay_seconds > 0:
                self._sleep(self.delay_seconds)
            self._run_isolated(context.for_tenant(tenant_id), summary)

        log.info(
            "Renewal finished: %d tenant(s) ok, %d failed; processed=%d succeeded=%d "
            "failed=%d skipped=%d",
            summary.tenants_succeeded,
            summary.tenants_failed,
            summary.processed,
            summary.succeeded,
            summary.failed,
            summary.skipped,
        )
        return summary

    def run_tenant(self, context: RunContext, counts: PipelineCounts | None = None) -> PipelineCounts:
        """Run the pipeline for one tenant (or one named record).

        ``counts`` is updated in place so chunks committed before a failure stay
        accounted for.
        """

        counts = counts if counts is not None else PipelineCounts()
        with self._uow_factory() as uow:
            writer = ChunkWriter(uow, chunk_size=context.chunk_size)
            candidates = select_candidates(
                uow.repositories.subscriptions,
                context,
                horizon_days=self.engine.policy.horizon_days,
            )
            writer.write_all(
                self._reconcile(candidates, context, counts),
                on_commit=lambda chunk: _tally(chunk, counts),
            )
        return counts

    def _reconcile(
        self,
        candidates: Iterable[SubscriptionRecord],
        context: RunContext,
        counts: PipelineCounts,
    ) -> Iterator[SubscriptionRecord]:
        for record in candidates:
            counts.processed += 1
            result = self.engine.process(record, context)
            if result is None:
                counts.skipped += 1
                continue
            yield result

    def _run_isolated(self, context: RunContext, summary: RunSummary) -> None:
        scope = context.tenant_id or "*"
        counts = PipelineCounts()
        try:
            self.run_tenant(context, counts)
        except Exception as exc:
            log.exception("Subscription renewal failed for tenant %s", scope)
            summary.tenants_failed += 1
            summary.tenant_errors[scope] = str(exc) or type(exc).__name__
        else:
            summary.tenants_succeeded += 1
            log.info(
                "Tenant %s: processed=%d succeeded=%d failed=%d skipped=%d",
                scope,
                counts.processed,
                counts.succeeded,
                counts.failed,
                counts.skipped,
            )
        summary.counts.add(counts)


def _tally(chunk: Sequence[SubscriptionRecord], counts: PipelineCounts) -> None:
    for record in chunk:
        if record.reconciliation_status is ReconciliationStatus.ERROR:
            counts.failed += 1
        else:
            counts.succeeded += 1
