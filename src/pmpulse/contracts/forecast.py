"""Forecast record contracts."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from pmpulse.contracts.models import ensure_aware


class ForecastType(StrEnum):
    MILESTONE = "milestone"
    SPRINT = "sprint"
    EPIC = "epic"
    INITIATIVE = "initiative"


class ForecastStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"


class ForecastAccuracy(BaseModel):
    diff_days: int
    percentage_error: float
    was_early: bool
    was_on_time: bool
    was_late: bool

    model_config = {"frozen": True}


class Forecast(BaseModel):
    id: str
    type: ForecastType
    target_id: str
    target_name: str = ""
    created_at: datetime
    target_date: datetime
    scope_size: int = Field(default=0, ge=0)
    confidence_score: int = Field(default=50, ge=0, le=100)
    metadata: dict[str, Any] = Field(default_factory=dict)
    actual_date: datetime | None = None
    status: ForecastStatus = ForecastStatus.PENDING
    accuracy: ForecastAccuracy | None = None

    @field_validator("created_at", "target_date", "actual_date")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)
