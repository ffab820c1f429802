"""Pydantic models describing the Stripe subscription payloads we read."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, model_validator


class StripeBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StripeSubscription(StripeBaseModel):
    id: str
    status: str
    current_period_start: int
    current_period_end: int
    cancel_at_period_end: bool = False
    canceled_at: int | None = None
    customer: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_item_periods(cls, value: object) -> object:
        """Recent API versions report the period on the subscription items only."""

        if not isinstance(value, Mapping):
            return value
        mapping_value = cast(Mapping[str, object], value)
        if "current_period_end" in mapping_value:
            return mapping_value
        items = mapping_value.get("items")
        if not isinstance(items, Mapping):
            return mapping_value
        item_data = cast(Mapping[str, object], items).get("data")
        if not isinstance(item_data, list) or not item_data:
            return mapping_value
        first = cast(object, item_data[0])
        if not isinstance(first, Mapping):
            return mapping_value
        item = cast(Mapping[str, object], first)
        data: dict[str, object] = dict(mapping_value)
        data.setdefault("current_period_start", item.get("current_period_start"))
        data["current_period_end"] = item.get("current_period_end")
        return data


class StripeErrorDetail(StripeBaseModel):
    message: str
    type: str | None = None
    code: str | None = None


class StripeErrorResponse(StripeBaseModel):
    error: StripeErrorDetail
