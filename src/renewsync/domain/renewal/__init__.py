"""Subscription renewal pipeline.

Flow per invocation:
1) the execution tracker records the run and guards against overlap
2) the orchestrator walks tenants one at a time
3) per tenant, the selector yields candidates, the engine reconciles each one
   against the billing provider and the writer commits results in chunks
"""

from __future__ import annotations

from .context import DEFAULT_CHUNK_SIZE, DEFAULT_MAX_RECORDS, PipelineCounts, RunContext, RunSummary
from .engine import ReconciliationEngine, apply_snapshot
from .orchestrator import DEFAULT_TENANT_DELAY_SECONDS, TenantOrchestrator
from .policy import DecisionReason, RenewalAction, RenewalDecision, RenewalPolicy, decide
from .selector import select_candidates
from .tracker import (
    DEFAULT_STALE_AFTER,
    RENEWAL_JOB_NAME,
    RENEWAL_JOB_TYPE,
    ExecutionNotFoundError,
    ExecutionTracker,
    RunAlreadyInProgressError,
    TrackedExecution,
)
from .writer import ChunkWriter

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_MAX_RECORDS",
    "DEFAULT_STALE_AFTER",
    "DEFAULT_TENANT_DELAY_SECONDS",
    "RENEWAL_JOB_NAME",
    "RENEWAL_JOB_TYPE",
    "ChunkWriter",
    "DecisionReason",
    "ExecutionNotFoundError",
    "ExecutionTracker",
    "PipelineCounts",
    "ReconciliationEngine",
    "RenewalAction",
    "RenewalDecision",
    "RenewalPolicy",
    "RunAlreadyInProgressError",
    "RunContext",
    "RunSummary",
    "TenantOrchestrator",
    "TrackedExecution",
    "apply_snapshot",
    "decide",
    "select_candidates",
]
