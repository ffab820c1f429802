"""Ports for the external billing provider."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from renewsync.domain.model import ExternalSnapshot


class BillingProviderError(RuntimeError):
    """Base class for recoverable billing-provider failures."""


class ProviderUnavailableError(BillingProviderError):
    """Raised when the provider cannot be reached or rejects the call."""


class ProviderConfigurationMissingError(BillingProviderError):
    """Raised when no provider credential can be resolved for a tenant."""


@runtime_checkable
class BillingProvider(Protocol):
    """Fetches the authoritative state of a single subscription."""

    def fetch_subscription(self, *, tenant_id: str, external_id: str) -> ExternalSnapshot: ...

    def close(self) -> None:
        """Release connections held open across fetches; later fetches reopen them."""


@runtime_checkable
class ProviderCredentialStore(Protocol):
    """Resolves the per-tenant secret used to call the provider."""

    def secret_for(self, tenant_id: str) -> str: ...
