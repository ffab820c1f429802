"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from renewsync.adapters.sqlalchemy.mappings import (
    execution_table,
    payment_provider_config_table,
    subscription_table,
)
from renewsync.config.stripe import STRIPE_PROVIDER_NAME
from renewsync.domain.model import (
    RENEWABLE_STATUSES,
    ExecutionRecord,
    ExecutionStatus,
    SubscriptionRecord,
)
from renewsync.domain.ports.billing import ProviderConfigurationMissingError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import date, datetime

    from sqlalchemy.orm import Session

    from renewsync.domain.ports import IdentifierCounter

log = getLogger(__name__)


class _CounterBackedRepository[TEntity: SubscriptionRecord | ExecutionRecord]:
    """Save entities whose ``id`` comes from the shared identifier counter.

    Each save runs inside a SAVEPOINT so a failed insert leaves the rest of the
    transaction intact. An id allocated here is cleared again on failure, so a
    retry draws a fresh one.
    """

    def __init__(self, session: Session, counter: IdentifierCounter) -> None:
        self.session = session
        self.counter = counter

    def save(self, entity: TEntity) -> TEntity:
        allocated = False
        try:
            with self.session.begin_nested():
                if entity.id is None:
                    entity.id = self.counter.next_value()
                    allocated = True
                self.session.add(entity)
                self.session.flush()
        except IntegrityError:
            if allocated:
                entity.id = None
            raise
        return entity


class SqlAlchemySubscriptionRepository(_CounterBackedRepository[SubscriptionRecord]):
    def get_by_external_id(
        self, external_subscription_id: str, *, tenant_id: str | None = None
    ) -> SubscriptionRecord | None:
        stmt = select(SubscriptionRecord).where(
            subscription_table.c.external_subscription_id == external_subscription_id
        )
        if tenant_id is not None:
            stmt = stmt.where(subscription_table.c.tenant_id == tenant_id)
        stmt = stmt.order_by(subscription_table.c.id).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def find_renewal_candidates(
        self,
        *,
        tenant_id: str | None,
        period_end_cutoff: date,
        limit: int,
    ) -> Sequence[SubscriptionRecord]:
        columns = subscription_table.c
        stmt = (
            select(SubscriptionRecord)
            .where(columns.status.in_(sorted(RENEWABLE_STATUSES)))
            .where(columns.cancel_at_period_end.is_(False))
            .where(columns.current_period_end <= period_end_cutoff)
            .where(columns.external_subscription_id.is_not(None))
            .where(columns.external_subscription_id != "")
        )
        if tenant_id is not None:
            stmt = stmt.where(columns.tenant_id == tenant_id)
        stmt = stmt.order_by(columns.current_period_end.asc(), columns.id.asc()).limit(limit)
        return list(self.session.execute(stmt).scalars())

    def distinct_tenant_ids(self) -> Sequence[str]:
        stmt = select(subscription_table.c.tenant_id).distinct().order_by(
            subscription_table.c.tenant_id
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyExecutionRepository(_CounterBackedRepository[ExecutionRecord]):
    def get(self, execution_id: int) -> ExecutionRecord | None:
        return self.session.get(ExecutionRecord, execution_id)

    def find_running(
        self, *, job_name: str, tenant_id: str | None, started_after: datetime
    ) -> ExecutionRecord | None:
        columns = execution_table.c
        stmt = (
            select(ExecutionRecord)
            .where(columns.job_name == job_name)
            .where(columns.status == ExecutionStatus.RUNNING)
            .where(columns.started_at >= started_after)
        )
        if tenant_id is None:
            stmt = stmt.where(columns.tenant_id.is_(None))
        else:
            stmt = stmt.where(columns.tenant_id == tenant_id)
        stmt = stmt.order_by(columns.started_at.desc()).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def recent(self, *, job_name: str, limit: int) -> Sequence[ExecutionRecord]:
        columns = execution_table.c
        stmt = (
            select(ExecutionRecord)
            .where(columns.job_name == job_name)
            .order_by(columns.started_at.desc(), columns.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyProviderCredentialStore:
    """Read per-tenant provider secrets from ``payment_provider_config``.

    ``decrypt`` receives the stored ``secretKey`` value; the default returns it
    unchanged.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        provider_name: str = STRIPE_PROVIDER_NAME,
        decrypt: Callable[[str], str] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.provider_name = provider_name
        self._decrypt = decrypt

    def secret_for(self, tenant_id: str) -> str:
        columns = payment_provider_config_table.c
        stmt = (
            select(columns.config_json)
            .where(columns.tenant_id == tenant_id)
            .where(func.upper(columns.provider_name) == self.provider_name.upper())
            .order_by(columns.id.desc())
            .limit(1)
        )
        with self._session_factory() as session:
            raw = session.execute(stmt).scalar_one_or_none()

        if raw is None:
            raise ProviderConfigurationMissingError(
                f"{self.provider_name} configuration not found for tenant {tenant_id}"
            )
        secret = _secret_from_config(raw)
        if not secret:
            raise ProviderConfigurationMissingError(
                f"{self.provider_name} secret key not configured for tenant {tenant_id}"
            )
        return self._decrypt(secret) if self._decrypt is not None else secret


def _secret_from_config(raw: str) -> str | None:
    try:
        loaded = json.loads(raw)
    except json.JSONDecodeError:
        log.warning("Ignoring malformed provider configuration JSON")
        return None
    if not isinstance(loaded, dict):
        return None
    secret = cast(dict[str, Any], loaded).get("secretKey")
    return secret if isinstance(secret, str) and secret.strip() else None
