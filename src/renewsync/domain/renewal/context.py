"""Per-invocation state shared by the renewal pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date

DEFAULT_CHUNK_SIZE = 100
DEFAULT_MAX_RECORDS = 10_000


@dataclass(frozen=True, slots=True)
class RunContext:
    """Arguments of one pipeline run; passed explicitly instead of stored on components."""

    today: date
    tenant_id: str | None = None
    external_subscription_id: str | None = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_records: int = DEFAULT_MAX_RECORDS

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        if self.max_records < 1:
            raise ValueError("max_records must be positive")

    @property
    def is_bypass(self) -> bool:
        """Whether a single named record is requested, skipping every candidate filter."""

        return bool(self.external_subscription_id)

    def for_tenant(self, tenant_id: str) -> RunContext:
        return replace(self, tenant_id=tenant_id)


@dataclass(slots=True)
class PipelineCounts:
    """Item-level outcome of one tenant's pipeline run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    def add(self, other: PipelineCounts) -> None:
        self.processed += other.processed
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.skipped += other.skipped


@dataclass(slots=True)
class RunSummary:
    """Aggregate outcome of an orchestrated run across tenants."""

    counts: PipelineCounts = field(default_factory=PipelineCounts)
    tenants_succeeded: int = 0
    tenants_failed: int = 0
    tenant_errors: dict[str, str] = field(default_factory=dict[str, str])

    @property
    def processed(self) -> int:
        return self.counts.processed

    @property
    def succeeded(self) -> int:
        return self.counts.succeeded

    @property
    def failed(self) -> int:
        return self.counts.failed

    @property
    def skipped(self) -> int:
        return self.counts.skipped

    def describe_failures(self) -> str | None:
        if not self.tenant_errors:
            return None
        details = "; ".join(f"{tenant}: {error}" for tenant, error in self.tenant_errors.items())
        return f"{self.tenants_failed} tenant(s) failed: {details}"
