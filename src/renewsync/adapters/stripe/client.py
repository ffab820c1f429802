"""HTTP client for the Stripe subscriptions API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from renewsync.adapters.http_resilience import ResilientClient
from renewsync.config.stripe import StripeConfig, get_stripe_config
from renewsync.domain.ports.billing import ProviderUnavailableError

from .schema import StripeErrorResponse, StripeSubscription
from .translator import to_snapshot

if TYPE_CHECKING:
    from collections.abc import Callable

    from renewsync.config.http_resilience import ResilienceConfig
    from renewsync.domain.model import ExternalSnapshot
    from renewsync.domain.ports.billing import ProviderCredentialStore

log = getLogger(__name__)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class StripeAPIError(RuntimeError):
    """Raised when Stripe answers with an error or an unreadable payload."""

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


@dataclass(slots=True)
class StripeBillingProvider:
    """Fetch live subscription state from Stripe with the tenant's own secret key.

    Every transport or API failure surfaces as ``ProviderUnavailableError``; a
    tenant without a configured key surfaces as
    ``ProviderConfigurationMissingError`` from the credential store. One HTTP
    client, and with it the rate limit, is shared by every fetch until
    ``close()``.
    """

    credentials: ProviderCredentialStore
    config: StripeConfig = field(default_factory=get_stripe_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _runner: asyncio.Runner | None = field(default=None, init=False, repr=False)
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    def fetch_subscription(self, *, tenant_id: str, external_id: str) -> ExternalSnapshot:
        secret = self.credentials.secret_for(tenant_id)
        try:
            payload = self._event_loop().run(
                self._fetch_async(secret=secret, external_id=external_id)
            )
        except (httpx.HTTPError, StripeAPIError) as exc:
            raise ProviderUnavailableError(
                f"Stripe lookup of {external_id} for tenant {tenant_id} failed: {exc}"
            ) from exc
        return to_snapshot(payload)

    async def _fetch_async(self, *, secret: str, external_id: str) -> StripeSubscription:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        response = await self._client.get(
            f"subscriptions/{quote(external_id, safe='')}",
            headers={"Authorization": f"Bearer {secret}"},
        )
        return _parse_response(response)

    def close(self) -> None:
        runner, client = self._runner, self._client
        self._runner, self._client = None, None
        if runner is None:
            return
        try:
            if client is not None:
                runner.run(client.aclose())
        finally:
            runner.close()

    def _event_loop(self) -> asyncio.Runner:
        # The client and its rate limiter are bound to this loop, so it lives
        # until close().
        if self._runner is None:
            self._runner = asyncio.Runner()
        return self._runner


def _parse_response(response: httpx.Response) -> StripeSubscription:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if response.is_error:
        if isinstance(payload, dict) and "error" in payload:
            try:
                error = StripeErrorResponse.model_validate(payload).error
            except ValidationError:
                pass
            else:
                log.error("Stripe API error %s: %s", response.status_code, error.message)
                raise StripeAPIError(
                    error.message, status_code=response.status_code, code=error.code
                )
        raise StripeAPIError(
            f"Stripe returned HTTP {response.status_code}", status_code=response.status_code
        )

    if not isinstance(payload, dict):
        raise StripeAPIError("Unexpected Stripe response payload", status_code=response.status_code)
    try:
        return StripeSubscription.model_validate(payload)
    except ValidationError as exc:
        raise StripeAPIError(
            f"Unexpected Stripe subscription payload: {exc.error_count()} validation error(s)",
            status_code=response.status_code,
        ) from exc
