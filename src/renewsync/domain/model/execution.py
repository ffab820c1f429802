"""Audit entries for batch job invocations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from renewsync.domain.model.enums import ExecutionStatus, TriggerSource

if TYPE_CHECKING:
    from datetime import datetime


class ExecutionAlreadyCompletedError(RuntimeError):
    """Raised when an execution record is completed a second time."""


@dataclass(eq=False, kw_only=True)
class ExecutionRecord:
    job_name: str
    job_type: str
    started_at: datetime
    status: ExecutionStatus = ExecutionStatus.RUNNING
    id: int | None = None
    tenant_id: str | None = None
    triggered_by: TriggerSource = TriggerSource.API
    parameters_json: str | None = None

    completed_at: datetime | None = None
    duration_ms: int | None = None
    processed_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    error_message: str | None = None

    @property
    def is_running(self) -> bool:
        return self.status is ExecutionStatus.RUNNING

    def complete(
        self,
        status: ExecutionStatus,
        *,
        at: datetime,
        processed: int,
        succeeded: int,
        failed: int,
        error_message: str | None = None,
    ) -> None:
        if not self.is_running:
            raise ExecutionAlreadyCompletedError(
                f"Execution {self.id} already finished with status {self.status}"
            )
        if status is ExecutionStatus.RUNNING:
            raise ValueError("An execution cannot be completed with status RUNNING")
        self.status = status
        self.completed_at = at
        self.duration_ms = max(0, int((at - self.started_at).total_seconds() * 1000))
        self.processed_count = processed
        self.success_count = succeeded
        self.failed_count = failed
        self.error_message = error_message
