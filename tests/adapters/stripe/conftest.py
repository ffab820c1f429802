"""Shared fixtures for Stripe adapter tests."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from renewsync.domain.ports import ProviderConfigurationMissingError

StripePayload = dict[str, object]

PERIOD_START = int(datetime(2025, 2, 13, 9, 30, tzinfo=UTC).timestamp())
PERIOD_END = int(datetime(2025, 3, 13, 9, 30, tzinfo=UTC).timestamp())


class FakeCredentialStore:
    def __init__(self, secrets: dict[str, str]) -> None:
        self.secrets = secrets
        self.calls: list[str] = []

    def secret_for(self, tenant_id: str) -> str:
        self.calls.append(tenant_id)
        try:
            return self.secrets[tenant_id]
        except KeyError:
            raise ProviderConfigurationMissingError(f"No secret for {tenant_id}") from None


@pytest.fixture
def subscription_payload() -> StripePayload:
    return {
        "id": "sub_123",
        "object": "subscription",
        "status": "active",
        "customer": "cus_9",
        "current_period_start": PERIOD_START,
        "current_period_end": PERIOD_END,
        "cancel_at_period_end": False,
        "canceled_at": None,
        "livemode": False,
    }


@pytest.fixture
def item_period_payload() -> StripePayload:
    return {
        "id": "sub_456",
        "object": "subscription",
        "status": "trialing",
        "cancel_at_period_end": True,
        "items": {
            "object": "list",
            "data": [
                {
                    "id": "si_1",
                    "current_period_start": PERIOD_START,
                    "current_period_end": PERIOD_END,
                }
            ],
        },
    }


@pytest.fixture
def credentials() -> FakeCredentialStore:
    return FakeCredentialStore({"tenant-1": "sk_test_tenant1"})
