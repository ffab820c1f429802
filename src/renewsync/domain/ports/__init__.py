"""Domain port definitions for adapters."""

from __future__ import annotations

from .billing import (
    BillingProvider,
    BillingProviderError,
    ProviderConfigurationMissingError,
    ProviderCredentialStore,
    ProviderUnavailableError,
)
from .persistence import (
    ExecutionRepository,
    IdentifierCounter,
    Repository,
    SubscriptionRepository,
    TenantRegistry,
)
from .unit_of_work import (
    RenewalRepositories,
    RenewalUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "BillingProvider",
    "BillingProviderError",
    "ExecutionRepository",
    "IdentifierCounter",
    "ProviderConfigurationMissingError",
    "ProviderCredentialStore",
    "ProviderUnavailableError",
    "RenewalRepositories",
    "RenewalUnitOfWork",
    "Repository",
    "RepositoryCollection",
    "SubscriptionRepository",
    "TenantRegistry",
    "UnitOfWork",
]
