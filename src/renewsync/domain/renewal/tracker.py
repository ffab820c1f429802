"""Audit trail for renewal job invocations."""

from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from renewsync.domain.identifiers import recover_identifier_collisions
from renewsync.domain.model import (
    ExecutionAlreadyCompletedError,
    ExecutionRecord,
    ExecutionStatus,
    TriggerSource,
)
from renewsync.domain.time_windows import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping, Sequence

    from renewsync.domain.ports.unit_of_work import RenewalUnitOfWork
    from renewsync.domain.time_windows import Clock

    from .context import PipelineCounts, RunSummary

log = getLogger(__name__)

RENEWAL_JOB_NAME = "subscriptionRenewalJob"
RENEWAL_JOB_TYPE = "SUBSCRIPTION_RENEWAL"
DEFAULT_STALE_AFTER = timedelta(hours=6)


class ExecutionNotFoundError(LookupError):
    """Raised when completing an execution id that does not exist."""


class RunAlreadyInProgressError(RuntimeError):
    """Raised when a non-stale RUNNING execution already covers the same scope."""

    def __init__(self, running: ExecutionRecord) -> None:
        scope = running.tenant_id or "all tenants"
        super().__init__(
            f"{running.job_name} is already running for {scope} "
            f"(execution {running.id}, started {running.started_at.isoformat()})"
        )
        self.running = running


@dataclass(slots=True)
class TrackedExecution:
    """Handle yielded by ``ExecutionTracker.track``; set ``summary`` before leaving."""

    record: ExecutionRecord
    summary: RunSummary | None = None


class ExecutionTracker:
    def __init__(
        self,
        unit_of_work_factory: Callable[[], RenewalUnitOfWork],
        *,
        clock: Clock = utcnow,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._clock = clock
        self.stale_after = stale_after

    def start(
        self,
        *,
        job_name: str = RENEWAL_JOB_NAME,
        job_type: str = RENEWAL_JOB_TYPE,
        tenant_id: str | None = None,
        triggered_by: TriggerSource = TriggerSource.API,
        parameters: Mapping[str, object] | None = None,
    ) -> ExecutionRecord:
        """Persist a RUNNING execution and return it.

        Raises ``RunAlreadyInProgressError`` when another execution of the same
        job and tenant scope is still running and not yet stale.
        """

        self._presync_identifiers()
        with self._uow_factory() as uow:
            now = self._clock()
            running = uow.repositories.executions.find_running(
                job_name=job_name,
                tenant_id=tenant_id,
                started_after=now - self.stale_after,
            )
            if running is not None:
                raise RunAlreadyInProgressError(running)

            record = ExecutionRecord(
                job_name=job_name,
                job_type=job_type,
                started_at=now,
                tenant_id=tenant_id,
                triggered_by=triggered_by,
                parameters_json=_serialise(parameters),
            )
            save = recover_identifier_collisions(
                uow.repositories.executions.save,
                resync=uow.repositories.identifiers.resync,
            )
            save(record)
            uow.commit()
        log.info(
            "Started execution %s of %s (tenant %s, triggered by %s)",
            record.id,
            job_name,
            tenant_id or "*",
            triggered_by,
        )
        return record

    def complete(
        self,
        execution_id: int,
        status: ExecutionStatus,
        *,
        counts: PipelineCounts | None = None,
        error_message: str | None = None,
    ) -> ExecutionRecord:
        with self._uow_factory() as uow:
            record = uow.repositories.executions.get(execution_id)
            if record is None:
                raise ExecutionNotFoundError(f"Execution {execution_id} not found")
            record.complete(
                status,
                at=self._clock(),
                processed=counts.processed if counts else 0,
                succeeded=counts.succeeded if counts else 0,
                failed=counts.failed if counts else 0,
                error_message=error_message,
            )
            uow.repositories.executions.save(record)
            uow.commit()
        log.info(
            "Execution %s finished with %s in %s ms",
            record.id,
            record.status,
            record.duration_ms,
        )
        return record

    @contextmanager
    def track(
        self,
        *,
        job_name: str = RENEWAL_JOB_NAME,
        job_type: str = RENEWAL_JOB_TYPE,
        tenant_id: str | None = None,
        triggered_by: TriggerSource = TriggerSource.API,
        parameters: Mapping[str, object] | None = None,
    ) -> Iterator[TrackedExecution]:
        """Wrap a run in a start/complete pair.

        Leaving the block normally completes the execution as COMPLETED with the
        counts of ``handle.summary``; any exception, interrupts included,
        completes it as FAILED and is re-raised.
        """

        record = self.start(
            job_name=job_name,
            job_type=job_type,
            tenant_id=tenant_id,
            triggered_by=triggered_by,
            parameters=parameters,
        )
        if record.id is None:
            raise RuntimeError("Execution was saved without an identifier")
        handle = TrackedExecution(record=record)
        try:
            yield handle
        except BaseException as exc:
            try:
                handle.record = self.complete(
                    record.id,
                    ExecutionStatus.FAILED,
                    counts=handle.summary.counts if handle.summary else None,
                    error_message=str(exc) or type(exc).__name__,
                )
            except (ExecutionNotFoundError, ExecutionAlreadyCompletedError):
                log.exception("Could not record failure of execution %s", record.id)
            raise

        summary = handle.summary
        handle.record = self.complete(
            record.id,
            ExecutionStatus.COMPLETED,
            counts=summary.counts if summary else None,
            error_message=summary.describe_failures() if summary else None,
        )

    def recent(self, *, job_name: str = RENEWAL_JOB_NAME, limit: int = 20) -> Sequence[ExecutionRecord]:
        with self._uow_factory() as uow:
            return list(uow.repositories.executions.recent(job_name=job_name, limit=limit))

    def _presync_identifiers(self) -> None:
        try:
            with self._uow_factory() as uow:
                next_value = uow.repositories.identifiers.resync()
                uow.commit()
        except Exception:  # noqa: BLE001
            log.warning("Identifier counter pre-sync failed; continuing", exc_info=True)
        else:
            log.debug("Identifier counter pre-synced; next value %s", next_value)


def _serialise(parameters: Mapping[str, object] | None) -> str | None:
    if not parameters:
        return None
    return json.dumps(dict(parameters), sort_keys=True, default=str)
