"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from renewsync.domain.model import ExecutionRecord, SubscriptionRecord

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date, datetime


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def save(self, entity: TEntity) -> TEntity: ...


@runtime_checkable
class SubscriptionRepository(Repository[SubscriptionRecord], Protocol):
    """Persistence contract for mirrored subscriptions."""

    def get_by_external_id(
        self, external_subscription_id: str, *, tenant_id: str | None = None
    ) -> SubscriptionRecord | None: ...

    def find_renewal_candidates(
        self,
        *,
        tenant_id: str | None,
        period_end_cutoff: date,
        limit: int,
    ) -> Sequence[SubscriptionRecord]: ...

    def distinct_tenant_ids(self) -> Sequence[str]: ...


@runtime_checkable
class ExecutionRepository(Repository[ExecutionRecord], Protocol):
    """Persistence contract for execution audit records."""

    def get(self, execution_id: int) -> ExecutionRecord | None: ...

    def find_running(
        self, *, job_name: str, tenant_id: str | None, started_after: datetime
    ) -> ExecutionRecord | None: ...

    def recent(self, *, job_name: str, limit: int) -> Sequence[ExecutionRecord]: ...


@runtime_checkable
class IdentifierCounter(Protocol):
    """Shared identifier counter used by several tables."""

    def next_value(self) -> int: ...

    def resync(self) -> int:
        """Advance the counter past every existing identifier and return the next value.

        Must be idempotent and never move the counter backwards.
        """
        ...


@runtime_checkable
class TenantRegistry(Protocol):
    """Source of tenant identifiers to reconcile."""

    def tenant_ids(self) -> Sequence[str]: ...
