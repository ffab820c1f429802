"""Clock helpers and the renewal window."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class RenewalWindow:
    """Forward-looking window in which a subscription counts as due for renewal."""

    horizon_days: int

    def __post_init__(self) -> None:
        if self.horizon_days < 0:
            raise ValueError("Renewal horizon must be non-negative")

    def cutoff(self, today: date) -> date:
        """Last period-end date (inclusive) that falls inside the window."""

        return today + timedelta(days=self.horizon_days)

    def contains(self, period_end: date | None, *, today: date) -> bool:
        return period_end is not None and period_end <= self.cutoff(today)


__all__ = ["Clock", "RenewalWindow", "utcnow"]
