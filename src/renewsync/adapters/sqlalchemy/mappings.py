"""SQLAlchemy mapping metadata for the renewal domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    orm,
)
from sqlalchemy.orm import configure_mappers

from renewsync.domain.model import (
    ExecutionRecord,
    ExecutionStatus,
    ReconciliationStatus,
    SubscriptionRecord,
    SubscriptionStatus,
    TriggerSource,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

SHARED_COUNTER_NAME: Final[str] = "sequence_generator"
_SHARED_COUNTER_INFO: Final[dict[str, str]] = {"counter": SHARED_COUNTER_NAME}


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Shared identifier counter -----------------------------------------------------

id_counter_table = Table(
    "id_counter",
    mapper_registry.metadata,
    Column("name", String(64), primary_key=True),
    Column("next_value", Integer, nullable=False),
)

# Mirrored subscriptions --------------------------------------------------------

subscription_table = Table(
    "membership_subscription",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False, info=_SHARED_COUNTER_INFO),
    Column("tenant_id", String(255), nullable=False),
    Column(
        "stripe_subscription_id",
        String(255),
        key="external_subscription_id",
        nullable=True,
    ),
    Column("stripe_customer_id", String(255), key="external_customer_id", nullable=True),
    Column(
        "subscription_status",
        Enum(SubscriptionStatus, native_enum=False, length=32),
        key="status",
        nullable=False,
    ),
    Column("current_period_start", Date, nullable=False),
    Column("current_period_end", Date, nullable=False),
    Column("trial_start", Date, nullable=True),
    Column("trial_end", Date, nullable=True),
    Column("cancel_at_period_end", Boolean, nullable=False, default=False),
    Column("cancelled_at", UTCDateTime(), nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("last_reconciled_at", UTCDateTime(), nullable=True),
    Column("last_stripe_sync_at", UTCDateTime(), key="last_external_sync_at", nullable=True),
    Column(
        "reconciliation_status",
        Enum(ReconciliationStatus, native_enum=False, length=32),
        nullable=False,
        default=ReconciliationStatus.PENDING,
    ),
    Column("reconciliation_error", Text, nullable=True),
)

Index(
    "ix_membership_subscription_tenant_period_end",
    subscription_table.c.tenant_id,
    subscription_table.c.current_period_end,
)
Index("ix_membership_subscription_stripe_id", subscription_table.c.external_subscription_id)

# Execution audit log -----------------------------------------------------------

execution_table = Table(
    "batch_job_execution_log",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False, info=_SHARED_COUNTER_INFO),
    Column("job_name", String(100), nullable=False),
    Column("job_type", String(50), nullable=False),
    Column("status", Enum(ExecutionStatus, native_enum=False, length=20), nullable=False),
    Column("tenant_id", String(255), nullable=True),
    Column("started_at", UTCDateTime(), nullable=False),
    Column("completed_at", UTCDateTime(), nullable=True),
    Column("duration_ms", Integer, nullable=True),
    Column("processed_count", Integer, nullable=False, default=0),
    Column("success_count", Integer, nullable=False, default=0),
    Column("failed_count", Integer, nullable=False, default=0),
    Column("error_message", Text, nullable=True),
    Column(
        "triggered_by",
        Enum(TriggerSource, native_enum=False, length=20),
        nullable=False,
        default=TriggerSource.API,
    ),
    Column("parameters", Text, key="parameters_json", nullable=True),
)

Index(
    "ix_batch_job_execution_log_job_started",
    execution_table.c.job_name,
    execution_table.c.started_at,
)

# Provider credentials (read-only here) ----------------------------------------

payment_provider_config_table = Table(
    "payment_provider_config",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False, info=_SHARED_COUNTER_INFO),
    Column("tenant_id", String(255), nullable=False),
    Column("provider_name", String(50), nullable=False),
    Column("config_json", Text, nullable=True),
)


def shared_counter_tables(name: str = SHARED_COUNTER_NAME) -> tuple[Table, ...]:
    """Return every table whose ``id`` column draws from the counter ``name``."""

    return tuple(
        table
        for table in mapper_registry.metadata.sorted_tables
        if "id" in table.c and table.c.id.info.get("counter") == name
    )


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(SubscriptionRecord, subscription_table)
    mapper_registry.map_imperatively(ExecutionRecord, execution_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
