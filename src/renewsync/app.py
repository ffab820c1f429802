"""Application orchestration entry points."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, PositiveInt, ValidationError, field_validator

from renewsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyRenewalUnitOfWork,
    SqlAlchemyTenantRegistry,
    credential_store,
    is_started,
    startup,
)
from renewsync.adapters.stripe import StripeBillingProvider
from renewsync.config import get_renewal_config, get_stripe_config
from renewsync.domain.model import TriggerSource
from renewsync.domain.ports.unit_of_work import RenewalUnitOfWork
from renewsync.domain.renewal import (
    ExecutionTracker,
    ReconciliationEngine,
    RenewalPolicy,
    RunAlreadyInProgressError,
    RunContext,
    TenantOrchestrator,
)
from renewsync.domain.time_windows import utcnow

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from renewsync.config import RenewalConfig
    from renewsync.domain.model import ExecutionRecord
    from renewsync.domain.ports import BillingProvider, TenantRegistry
    from renewsync.domain.time_windows import Clock

UnitOfWorkFactory = Callable[[], RenewalUnitOfWork]


log = getLogger(__name__)


class RenewalJobRequest(BaseModel):
    """Trigger parameters; every field is optional."""

    model_config = ConfigDict(extra="forbid")

    tenant_id: str | None = None
    batch_size: PositiveInt | None = None
    max_records: PositiveInt | None = None
    external_subscription_id: str | None = None

    @field_validator("tenant_id", "external_subscription_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value


class RenewalJobResponse(BaseModel):
    success: bool
    message: str
    execution_id: int | None = None
    processed_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    duration_ms: int | None = None


@dataclass(slots=True)
class RenewalServices:
    tracker: ExecutionTracker
    orchestrator: TenantOrchestrator
    config: RenewalConfig


def build_renewal_services(
    config: RenewalConfig | None = None,
    *,
    provider: BillingProvider | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    registry: TenantRegistry | None = None,
    clock: Clock = utcnow,
    sleep: Callable[[float], None] = time.sleep,
) -> RenewalServices:
    """Wire the renewal pipeline to the configured adapters.

    Anything passed explicitly replaces the SQLAlchemy or Stripe default.
    """

    effective_config = config or get_renewal_config()
    if unit_of_work_factory is None or registry is None or provider is None:
        if not is_started():
            startup()
    effective_uow = unit_of_work_factory or SqlAlchemyRenewalUnitOfWork
    effective_registry = registry or SqlAlchemyTenantRegistry()
    effective_provider = provider or StripeBillingProvider(
        credentials=credential_store(),
        config=get_stripe_config(),
    )

    if effective_config.allow_local_fallback:
        log.warning(
            "Local date fallback is enabled; subscriptions may be processed on local dates "
            "the billing provider disagrees with"
        )

    policy = RenewalPolicy(
        horizon_days=effective_config.horizon_days,
        allow_local_fallback=effective_config.allow_local_fallback,
    )
    engine = ReconciliationEngine(provider=effective_provider, policy=policy, clock=clock)
    orchestrator = TenantOrchestrator(
        unit_of_work_factory=effective_uow,
        engine=engine,
        registry=effective_registry,
        delay_seconds=effective_config.tenant_delay_seconds,
        sleep=sleep,
    )
    tracker = ExecutionTracker(
        effective_uow,
        clock=clock,
        stale_after=timedelta(hours=effective_config.stale_run_hours),
    )
    return RenewalServices(tracker=tracker, orchestrator=orchestrator, config=effective_config)


def run_subscription_renewal(
    request: RenewalJobRequest | Mapping[str, object] | None = None,
    *,
    triggered_by: TriggerSource = TriggerSource.API,
    services: RenewalServices | None = None,
    clock: Clock = utcnow,
) -> RenewalJobResponse:
    """Run the renewal job synchronously and report the recorded execution."""

    try:
        validated = (
            request
            if isinstance(request, RenewalJobRequest)
            else RenewalJobRequest.model_validate(dict(request or {}))
        )
    except ValidationError as exc:
        log.warning("Rejected renewal request: %s", exc)
        return RenewalJobResponse(
            success=False,
            message=f"Invalid request: {exc.error_count()} validation error(s)",
        )

    effective = services or build_renewal_services(clock=clock)
    config = effective.config
    context = RunContext(
        today=clock().date(),
        tenant_id=validated.tenant_id,
        external_subscription_id=validated.external_subscription_id,
        chunk_size=validated.batch_size or config.chunk_size,
        max_records=validated.max_records or config.max_records,
    )
    log.info(
        "Starting subscription renewal: tenant=%s, external_id=%s, chunk_size=%s, "
        "max_records=%s, triggered_by=%s",
        context.tenant_id,
        context.external_subscription_id,
        context.chunk_size,
        context.max_records,
        triggered_by,
    )

    started = False
    try:
        with effective.tracker.track(
            tenant_id=validated.tenant_id,
            triggered_by=triggered_by,
            parameters=validated.model_dump(exclude_none=True),
        ) as execution:
            started = True
            execution.summary = effective.orchestrator.run(context)
    except RunAlreadyInProgressError as exc:
        log.warning("Subscription renewal not started: %s", exc)
        return RenewalJobResponse(success=False, message=str(exc))
    except Exception as exc:
        if not started:
            log.exception("Failed to start subscription renewal")
            return RenewalJobResponse(
                success=False, message=f"Failed to start subscription renewal: {exc}"
            )
        log.exception("Subscription renewal failed")
        return RenewalJobResponse(success=False, message=f"Subscription renewal failed: {exc}")

    record = execution.record
    summary = execution.summary
    message = "Subscription renewal completed"
    if summary is not None and summary.tenants_failed:
        message = f"{message} with {summary.tenants_failed} failed tenant(s)"
    log.info(
        f"Finished subscription renewal: execution={record.id}, processed={record.processed_count}, "
        f"succeeded={record.success_count}, failed={record.failed_count}, "
        f"duration_ms={record.duration_ms}"
    )
    return RenewalJobResponse(
        success=True,
        message=message,
        execution_id=record.id,
        processed_count=record.processed_count,
        success_count=record.success_count,
        failed_count=record.failed_count,
        duration_ms=record.duration_ms,
    )


def run_scheduled_renewal(
    *,
    services: RenewalServices | None = None,
    config: RenewalConfig | None = None,
    clock: Clock = utcnow,
) -> RenewalJobResponse | None:
    """Entry point for the external scheduler; ``None`` when scheduling is disabled."""

    effective_config = services.config if services is not None else config or get_renewal_config()
    if not effective_config.schedule_enabled:
        log.info("Scheduled subscription renewal is disabled")
        return None
    log.info("Scheduled subscription renewal triggered (cron %s)", effective_config.schedule_cron)
    effective = services or build_renewal_services(effective_config, clock=clock)
    return run_subscription_renewal(
        RenewalJobRequest(),
        triggered_by=TriggerSource.SCHEDULED,
        services=effective,
        clock=clock,
    )


def list_recent_executions(
    *,
    limit: int = 20,
    services: RenewalServices | None = None,
) -> Sequence[ExecutionRecord]:
    effective = services or build_renewal_services()
    return effective.tracker.recent(limit=limit)
