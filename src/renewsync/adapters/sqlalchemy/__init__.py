"""SQLAlchemy adapter package for renewsync."""

from __future__ import annotations

from .identifiers import CounterAdjustmentError, SqlAlchemyIdentifierCounter
from .mappings import (
    SHARED_COUNTER_NAME,
    create_all_tables,
    mapper_registry,
    shared_counter_tables,
    start_mappers,
)
from .repositories import (
    SqlAlchemyExecutionRepository,
    SqlAlchemyProviderCredentialStore,
    SqlAlchemySubscriptionRepository,
)
from .unit_of_work import (
    SqlAlchemyRenewalUnitOfWork,
    SqlAlchemyTenantRegistry,
    StartupError,
    credential_store,
    shutdown,
    startup,
)

__all__ = [
    "SHARED_COUNTER_NAME",
    "CounterAdjustmentError",
    "SqlAlchemyExecutionRepository",
    "SqlAlchemyIdentifierCounter",
    "SqlAlchemyProviderCredentialStore",
    "SqlAlchemyRenewalUnitOfWork",
    "SqlAlchemySubscriptionRepository",
    "SqlAlchemyTenantRegistry",
    "StartupError",
    "create_all_tables",
    "credential_store",
    "mapper_registry",
    "shared_counter_tables",
    "shutdown",
    "start_mappers",
    "startup",
]
